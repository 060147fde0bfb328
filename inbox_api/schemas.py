"""
Pydantic schemas for request/response validation.

This module contains:
- Request models for incoming data validation
- Response models for API responses
"""

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Pydantic Request Models
# =============================================================================

class SendMessageRequest(BaseModel):
    """
    Body of POST /members/send-private-message.

    Validates:
    - message: non-blank text, max 3000 characters
    - toUserId: non-empty receiver id
    """
    message: str = Field(
        ...,
        min_length=1,
        max_length=3000,
        description="Message text"
    )
    to_user_id: str = Field(
        ...,
        alias="toUserId",
        min_length=1,
        description="Id of the receiving user"
    )

    @field_validator("message")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("message must not be blank")
        return v

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {"message": "Hello!", "toUserId": "6c1f0a52-9a0f-4a8e-8a55-6d2b1c1f7a10"}
            ]
        },
    )


# =============================================================================
# Pydantic Response Models
# =============================================================================

class MessageRecord(BaseModel):
    """
    One inbox message as returned to clients.
    Extra keys (such as the toUser* fields added for sent messages) pass through.
    """
    id: str = Field(..., alias="_id", serialization_alias="_id")
    owner_id: str = Field(..., alias="ownerId", serialization_alias="ownerId")
    uuid: str
    user: Optional[str] = None
    username: Optional[str] = None
    text: Optional[str] = None
    timestamp: str
    sent: bool = False
    user_styles: Optional[dict] = Field(None, alias="userStyles", serialization_alias="userStyles")
    contributor: Optional[dict] = None
    backer: Optional[dict] = None

    model_config = ConfigDict(populate_by_name=True, extra="allow")


class ConversationRecord(BaseModel):
    """One row of GET /inbox/conversations."""
    uuid: str
    user: Optional[str] = None
    username: Optional[str] = None
    timestamp: str
    text: Optional[str] = None
    count: int = Field(..., ge=1)
    user_styles: Optional[dict] = Field(None, alias="userStyles", serialization_alias="userStyles")
    contributor: Optional[dict] = None
    backer: Optional[dict] = None

    model_config = ConfigDict(populate_by_name=True)


class SendMessageResponse(BaseModel):
    message: MessageRecord


class SuccessResponse(BaseModel):
    success: bool = True


class ErrorResponse(BaseModel):
    """Response model for error responses."""
    detail: Any = Field(..., description="Error description")


class HealthResponse(BaseModel):
    """Response model for health check endpoints."""
    status: str = Field(..., description="Health status")
    reason: Optional[str] = Field(None, description="Reason if not ready")
