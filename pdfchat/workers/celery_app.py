# =============================================================================
# Celery Application Configuration — Ingestion Queue
# =============================================================================
#
# ARCHITECTURE:
# ┌──────────┐     ┌────────┐     ┌───────────────┐     ┌──────────────┐
# │ FastAPI  │────▶│ Redis  │────▶│ Celery Worker │────▶│ Vector Index │
# │ /upload  │     │(broker)│     │ (processor)   │     │ (Qdrant)     │
# └──────────┘     └────────┘     └───────────────┘     └──────────────┘
#                      db 0              │
#                                        └──▶ Redis db 1 (job status)
#
# Start a worker:
#   celery -A pdfchat.workers.celery_app worker --loglevel=INFO
# =============================================================================

from celery import Celery

from pdfchat.config import settings

celery_app = Celery(
    "pdfchat.workers",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
)

celery_app.conf.update(
    # --- Serialization ---
    # JSON only; pickle can execute code on deserialization.
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # --- Routing ---
    task_default_queue=settings.queue_name,

    # --- Delivery: at-least-once ---
    # Ack after the task finishes; a crashed or killed worker leaves the job
    # on the queue for another worker.
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,

    # --- Admission control ---
    # Caps parallel jobs so embedding calls stay under provider rate limits.
    worker_concurrency=settings.worker_concurrency,

    # --- Timeouts ---
    task_soft_time_limit=settings.task_soft_time_limit,
    task_time_limit=settings.task_time_limit,

    # --- Results ---
    task_track_started=True,
    result_expires=3600,

    include=["pdfchat.workers.tasks"],
)
