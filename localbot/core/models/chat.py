"""Chat answer models."""

from pydantic import Field

from .base import LocalBotBaseModel
from .enums import AnswerSource
from .knowledge import QueryMatch

DEFAULT_FALLBACK_MESSAGE = "I'm sorry, I don't have an answer for that. Please contact us directly."


class ChatbotProfile(LocalBotBaseModel):
    """What the answer step needs to know about the chatbot it speaks for."""

    chatbot_id: str = Field(..., min_length=1)
    bot_name: str = "Assistant"
    business_name: str = "our business"
    fallback_message: str = DEFAULT_FALLBACK_MESSAGE


class ChatAnswer(LocalBotBaseModel):
    """Answer returned to the chat widget."""

    answer: str
    confidence: float = Field(0.0, ge=0.0, le=1.0)
    source: AnswerSource
    matches: list[QueryMatch] = Field(default_factory=list)
    tokens_used: int = Field(0, ge=0)
