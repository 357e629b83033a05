"""Answer composition: direct matches, generated answers and degraded paths."""

import asyncio

import pytest

from localbot.chat.answerer import ChatAnswerer, build_system_prompt, format_faq_context
from localbot.core.errors import EmbeddingError, GenerationError, ValidationError
from localbot.core.models.chat import ChatbotProfile
from localbot.core.models.enums import AnswerSource
from localbot.core.models.knowledge import QAPair, QueryMatch

PROFILE = ChatbotProfile(chatbot_id="t1", bot_name="Sunny", business_name="Sunny Bakery")


def _seed(kb_sync):
    asyncio.run(kb_sync.upsert_batch([
        QAPair(id="q1", chatbot_id="t1", question="What are your hours?", answer="9am to 5pm, Monday to Saturday."),
        QAPair(id="q2", chatbot_id="t1", question="Do you deliver?", answer="Yes, within 5 miles."),
    ]))


def test_exact_question_is_answered_directly(kb_sync, retriever, fake_openai):
    _seed(kb_sync)
    answerer = ChatAnswerer(retriever)

    result = asyncio.run(answerer.answer("What are your hours?", PROFILE))

    assert result.source == AnswerSource.DIRECT_MATCH
    assert result.answer == "9am to 5pm, Monday to Saturday."
    assert result.confidence == 1.0
    assert fake_openai.chat_calls == []


def test_weak_match_goes_to_the_chat_model_with_context(kb_sync, retriever, fake_openai):
    _seed(kb_sync)
    answerer = ChatAnswerer(retriever, direct_match_threshold=1.01, context_count=1)

    result = asyncio.run(answerer.answer("What are your hours?", PROFILE))

    assert result.source == AnswerSource.GENERATED
    assert result.answer == "Generated answer"
    assert result.tokens_used == 42

    system, user = fake_openai.chat_calls[0]
    assert user == {"role": "user", "content": "What are your hours?"}
    assert "You are Sunny" in system["content"]
    assert "FAQ 1" in system["content"]
    assert "FAQ 2" not in system["content"]


def test_retrieval_failure_answers_without_context(retriever, fake_openai):
    fake_openai.embedding_error = EmbeddingError("provider down")
    answerer = ChatAnswerer(retriever)

    result = asyncio.run(answerer.answer("Are you open?", PROFILE))

    assert result.source == AnswerSource.GENERATED
    assert result.matches == []
    assert "don't have any FAQ data yet" in fake_openai.chat_calls[0][0]["content"]


def test_generation_failure_returns_fallback(kb_sync, retriever, fake_openai):
    _seed(kb_sync)
    fake_openai.chat_error = GenerationError("model down")
    answerer = ChatAnswerer(retriever, direct_match_threshold=1.01)

    result = asyncio.run(answerer.answer("What are your hours?", PROFILE))

    assert result.source == AnswerSource.FALLBACK
    assert result.answer == PROFILE.fallback_message
    assert result.matches


def test_empty_message_rejected(retriever):
    with pytest.raises(ValidationError):
        asyncio.run(ChatAnswerer(retriever).answer("   ", PROFILE))


def test_prompt_helpers():
    matches = [QueryMatch(id="q1", score=0.8, question="Hours?", answer="9-5")]
    context = format_faq_context(matches)
    assert context == "FAQ 1 (relevance: 80%):\nQ: Hours?\nA: 9-5"
    assert context in build_system_prompt(PROFILE, context)
    assert PROFILE.fallback_message in build_system_prompt(PROFILE, "")
