# =============================================================================
# Models Package — Pydantic V2 Schemas
# =============================================================================
#   - domain.py: UploadJob (queue payload) and ChatTurn
#   - requests.py: POST /chat body
#   - responses.py: Every JSON response the API returns
# =============================================================================
