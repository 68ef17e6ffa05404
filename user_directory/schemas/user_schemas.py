"""
User-related Pydantic schemas for request/response validation.
"""
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator


class UserCreate(BaseModel):
    """User creation request schema."""

    name: str = Field(..., min_length=1, max_length=255, description="User's name")
    email: EmailStr = Field(..., description="User's email address")

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "name": "Alice",
                "email": "alice@example.com"
            }
        }
    )

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be blank")
        return v


class UserResponse(BaseModel):
    """User as returned to clients, email in plaintext."""

    id: int
    name: str
    email: str

    model_config = ConfigDict(from_attributes=True)