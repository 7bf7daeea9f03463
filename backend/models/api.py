"""API request and response models."""
from datetime import datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from models.turn import IncomingTurn, InpaintJob, Turn


class ChatRequest(BaseModel):
    """Request body for POST /chat."""
    chat_id: str = Field(..., min_length=1, description="Conversation identifier")
    content: str = Field(
        ...,
        validation_alias=AliasChoices("content", "message"),
        description="User message text",
    )
    user_id: str = Field("", description="Participant identifier; empty means anonymous")
    object: str = Field("", description="Explicit subject identifier")
    image: str = Field("", description="Explicit image handle, overrides history")
    image_name: str = ""

    @field_validator("user_id")
    @classmethod
    def strip_user_id(cls, value: str) -> str:
        return value.strip()

    def to_incoming(self) -> IncomingTurn:
        return IncomingTurn(
            chat_id=self.chat_id,
            content=self.content,
            user_id=self.user_id,
            image=self.image,
            image_name=self.image_name,
            object=self.object,
        )


class TurnResponse(BaseModel):
    """A turn as returned to HTTP callers."""
    chat_id: str
    role: str
    content: str
    timestamp: datetime
    user_id: str = ""
    image: Optional[str] = None
    image_name: Optional[str] = None

    @classmethod
    def from_turn(cls, turn: Turn) -> "TurnResponse":
        return cls(
            chat_id=turn.chat_id,
            role=turn.role.value,
            content=turn.content,
            timestamp=turn.timestamp,
            user_id=turn.user_id,
            image=turn.image or None,
            image_name=turn.image_name or None,
        )


class InpaintRequest(BaseModel):
    """Request body for POST /inpaint."""
    chat_id: str = Field(..., min_length=1)
    image: str = Field(..., min_length=1, description="Source image handle")
    user_id: str = ""
    mask: str = ""
    prompt: str = ""
    image_name: str = ""

    @field_validator("user_id")
    @classmethod
    def strip_user_id(cls, value: str) -> str:
        return value.strip()

    def to_job(self) -> InpaintJob:
        return InpaintJob(
            chat_id=self.chat_id,
            image=self.image,
            user_id=self.user_id,
            mask=self.mask,
            prompt=self.prompt,
            image_name=self.image_name,
        )


class InpaintResponse(BaseModel):
    """Response body for POST /inpaint."""
    img: str
    img_name: str = ""


class AuthRequest(BaseModel):
    """Request body for POST /auth."""
    code: str = Field(..., min_length=1, description="OAuth authorization code")


class TokenResponse(BaseModel):
    """Token set returned by the OAuth provider."""
    model_config = ConfigDict(extra="ignore")

    access_token: str = ""
    expires_in: int = 0
    id_token: str = ""
    scope: str = ""
    token_type: str = ""
    refresh_token: str = ""


class PricingRequest(BaseModel):
    """Request body for POST /pricing."""
    original_image: str = ""
    resource_description: str = ""
    resource_name: str = ""
    user_id: str = ""


class PricingResponse(BaseModel):
    pricing_schema: str
