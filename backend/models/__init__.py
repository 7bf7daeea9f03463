"""Data models for ChatRelay backend."""
from .turn import (
    Role,
    Turn,
    TurnDecodeError,
    IncomingTurn,
    GenerationRequest,
    GenerationResponse,
    InpaintJob,
    InpaintResult,
    AssembledHistory,
    TurnOutcome,
    TurnBatch,
    TurnClock,
)
from .api import ChatRequest, TurnResponse, InpaintResponse, AuthRequest, TokenResponse, PricingRequest, PricingResponse

__all__ = [
    "Role",
    "Turn",
    "TurnDecodeError",
    "IncomingTurn",
    "GenerationRequest",
    "GenerationResponse",
    "InpaintJob",
    "InpaintResult",
    "AssembledHistory",
    "TurnOutcome",
    "TurnBatch",
    "TurnClock",
    "ChatRequest",
    "TurnResponse",
    "InpaintResponse",
    "AuthRequest",
    "TokenResponse",
    "PricingRequest",
    "PricingResponse",
]
