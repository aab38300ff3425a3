# =============================================================================
# Workers Package — Celery Background Tasks
# =============================================================================
#   - celery_app.py: Celery application configuration
#   - tasks.py: process_upload (runs the ingestion pipeline)
#   - queue.py: enqueue() / job_status() used by the upload API
# =============================================================================
