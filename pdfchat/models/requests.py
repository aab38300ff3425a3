# =============================================================================
# API Request Models — Pydantic V2 Schemas
# =============================================================================
#
# GET /chat takes its query from the URL, so the only request body in the
# API is POST /chat, which additionally carries client-held history.
# =============================================================================

from pydantic import BaseModel, ConfigDict, Field

from pdfchat.models.domain import ChatTurn


class ChatRequest(BaseModel):
    """
    Request body for POST /chat.

    Example:
        {
            "message": "What is this document about?",
            "history": [
                {"role": "user", "content": "Hi"},
                {"role": "assistant", "content": "Hello! Ask me about your PDF."}
            ]
        }
    """

    # Blank messages are rejected by the responder with a 400, not by
    # Pydantic with a 422, so GET and POST behave the same.
    message: str = Field(
        default="",
        max_length=4000,
        description="The question to answer from the uploaded documents",
    )
    history: list[ChatTurn] = Field(
        default_factory=list,
        description="Earlier turns of this conversation, oldest first",
    )

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {"message": "What is this document about?", "history": []},
            ]
        }
    )
