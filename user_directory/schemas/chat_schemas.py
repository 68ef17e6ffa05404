"""
Chat-related Pydantic schemas.
"""
from pydantic import BaseModel, Field


class ChatRequest(BaseModel):
    """Chat request schema: a single user message."""

    message: str = Field(..., min_length=1, max_length=4000, description="User message")
