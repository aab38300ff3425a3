# =============================================================================
# API Package — FastAPI Route Handlers
# =============================================================================
# Each module defines a FastAPI APIRouter for a specific feature:
#   - upload.py: PDF upload and ingestion job status
#   - chat.py: Retrieval-augmented question answering
#   - health.py: Backend health probe and model catalogue
# =============================================================================
