"""Answer composition for the chat widget.

Pipeline:
1. Retrieve the top-K Q&A matches for the visitor's message
2. If the best score clears the direct-match threshold, return its answer
3. Otherwise ask the chat model, using the top matches as FAQ context
4. Upstream failures degrade: retrieval errors drop the context, generation
   errors return the chatbot's fallback message
"""

from typing import Any

from ..core.errors import UpstreamError, ValidationError
from ..core.models.chat import ChatAnswer, ChatbotProfile
from ..core.models.enums import AnswerSource
from ..core.models.knowledge import QueryMatch
from ..integrations.openai_client import OpenAIClient
from ..observability.logger import get_logger
from ..search.retriever import Retriever

logger = get_logger(__name__)

DEFAULT_DIRECT_MATCH_THRESHOLD = 0.75
DEFAULT_CONTEXT_COUNT = 3


def format_faq_context(matches: list[QueryMatch]) -> str:
    return "\n\n".join(
        f"FAQ {i} (relevance: {match.score * 100:.0f}%):\nQ: {match.question}\nA: {match.answer}"
        for i, match in enumerate(matches, start=1)
    )


def build_system_prompt(profile: ChatbotProfile, faq_context: str) -> str:
    intro = (
        f"You are {profile.bot_name}, a helpful customer service assistant for {profile.business_name}."
    )
    if not faq_context:
        return f'{intro} You don\'t have any FAQ data yet. Respond politely with: "{profile.fallback_message}"'
    return (
        f"{intro} Answer the user's question using ONLY the following FAQs as your knowledge base. "
        f"Be friendly and concise. If the FAQs don't contain enough information to answer, "
        f'say: "{profile.fallback_message}"\n\nFAQs:\n{faq_context}'
    )


class ChatAnswerer:
    """Turn a visitor message into an answer for one chatbot."""

    def __init__(
        self,
        retriever: Retriever,
        openai_client: OpenAIClient | None = None,
        direct_match_threshold: float = DEFAULT_DIRECT_MATCH_THRESHOLD,
        context_count: int = DEFAULT_CONTEXT_COUNT,
        temperature: float = 0.3,
        max_tokens: int = 500,
    ):
        self.retriever = retriever
        self.openai_client = openai_client or retriever.embedder.openai_client
        self.direct_match_threshold = direct_match_threshold
        self.context_count = context_count
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.logger = get_logger(f"{__name__}.{self.__class__.__name__}")

    @classmethod
    def from_config(cls, config: dict[str, Any], retriever: Retriever) -> "ChatAnswerer":
        chat_cfg = config.get("chat", {}) or {}
        return cls(
            retriever=retriever,
            direct_match_threshold=float(chat_cfg.get("direct_match_threshold", DEFAULT_DIRECT_MATCH_THRESHOLD)),
            context_count=int(chat_cfg.get("context_count", DEFAULT_CONTEXT_COUNT)),
            temperature=float(chat_cfg.get("temperature", 0.3)),
            max_tokens=int(chat_cfg.get("max_tokens", 500)),
        )

    async def answer(self, message: str, profile: ChatbotProfile) -> ChatAnswer:
        """Answer a visitor message.

        Raises:
            ValidationError: If the message is empty
        """
        message = message.strip() if isinstance(message, str) else ""
        if not message:
            raise ValidationError("Message must not be empty.")

        matches: list[QueryMatch] = []
        try:
            matches = await self.retriever.retrieve(message, profile.chatbot_id)
        except UpstreamError as e:
            # No context is better than no answer
            self.logger.error(
                "retrieval_failed_answering_without_context",
                chatbot_id=profile.chatbot_id,
                error_type=type(e).__name__,
                error=str(e),
            )

        top_match = matches[0] if matches else None
        if top_match and top_match.score > self.direct_match_threshold:
            self.logger.info("direct_match_answer", chatbot_id=profile.chatbot_id, match_id=top_match.id, score=top_match.score)
            return ChatAnswer(
                answer=top_match.answer or profile.fallback_message,
                confidence=1.0,
                source=AnswerSource.DIRECT_MATCH,
                matches=matches,
            )

        system_prompt = build_system_prompt(profile, format_faq_context(matches[: self.context_count]))
        try:
            content, metadata = await self.openai_client.create_chat_completion(
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": message},
                ],
                temperature=self.temperature,
                max_tokens=self.max_tokens,
            )
        except UpstreamError as e:
            self.logger.error(
                "chat_generation_failed",
                chatbot_id=profile.chatbot_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            return ChatAnswer(
                answer=profile.fallback_message,
                confidence=0.0,
                source=AnswerSource.FALLBACK,
                matches=matches,
            )

        self.logger.info("generated_answer", chatbot_id=profile.chatbot_id, context_matches=min(len(matches), self.context_count))
        return ChatAnswer(
            answer=content,
            confidence=0.0,
            source=AnswerSource.GENERATED,
            matches=matches,
            tokens_used=metadata.get("tokens_total", 0) or 0,
        )
