"""
Tests for the AI quiz generator client

The HTTP layer is replaced with httpx.MockTransport.
"""
import json

import httpx
import pytest

from readtrack.ai_client import QuizGenerationError, QuizGenerator, get_quiz_generator
from tests.conftest import SAMPLE_QUESTIONS

API_URL = "https://ai.test/v1/chat/completions"


def completion(content: str) -> dict:
    return {"choices": [{"message": {"role": "assistant", "content": content}}]}


def make_generator(handler, api_key="test-key") -> QuizGenerator:
    return QuizGenerator(
        api_url=API_URL,
        api_key=api_key,
        model="test-model",
        timeout=5.0,
        transport=httpx.MockTransport(handler),
    )


async def test_generate_quiz_success():
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["request"] = request
        captured["body"] = json.loads(request.content)
        return httpx.Response(200, json=completion(json.dumps({"questions": SAMPLE_QUESTIONS})))

    questions = await make_generator(handler).generate_quiz("Dune", "Frank Herbert", "hard", 3)

    assert questions == SAMPLE_QUESTIONS
    request = captured["request"]
    assert str(request.url) == API_URL
    assert request.headers["Authorization"] == "Bearer test-key"
    body = captured["body"]
    assert body["model"] == "test-model"
    assert body["response_format"] == {"type": "json_object"}
    assert "Dune" in body["messages"][1]["content"]
    assert "hard" in body["messages"][1]["content"]


async def test_http_error_raises():
    def handler(request):
        return httpx.Response(500, json={"error": "overloaded"})

    with pytest.raises(QuizGenerationError):
        await make_generator(handler).generate_quiz("Dune", "Frank Herbert", "easy", 10)


async def test_transport_error_raises():
    def handler(request):
        raise httpx.ConnectError("connection refused")

    with pytest.raises(QuizGenerationError):
        await make_generator(handler).generate_quiz("Dune", "Frank Herbert", "easy", 10)


async def test_missing_message_content_raises():
    def handler(request):
        return httpx.Response(200, json={"choices": []})

    with pytest.raises(QuizGenerationError):
        await make_generator(handler).generate_quiz("Dune", "Frank Herbert", "easy", 10)


async def test_missing_api_key_raises():
    def handler(request):
        raise AssertionError("no request expected")

    with pytest.raises(QuizGenerationError):
        await make_generator(handler, api_key=None).generate_quiz("Dune", "Frank Herbert", "easy", 10)


class TestParseQuestions:
    generator = QuizGenerator(api_url=API_URL, api_key="k", model="m")

    def test_invalid_json(self):
        with pytest.raises(QuizGenerationError):
            self.generator.parse_questions("not json")

    def test_missing_questions_key(self):
        with pytest.raises(QuizGenerationError):
            self.generator.parse_questions(json.dumps({"quiz": []}))

    def test_empty_questions(self):
        with pytest.raises(QuizGenerationError):
            self.generator.parse_questions(json.dumps({"questions": []}))

    def test_answer_out_of_range(self):
        bad = {"type": "multiple_choice", "question": "q", "options": ["a", "b"], "correctAnswer": 4}
        with pytest.raises(QuizGenerationError):
            self.generator.parse_questions(json.dumps({"questions": [bad]}))

    def test_multiple_select_needs_answer_list(self):
        bad = {"type": "multiple_select", "question": "q", "options": ["a", "b", "c"], "correctAnswer": 1}
        with pytest.raises(QuizGenerationError):
            self.generator.parse_questions(json.dumps({"questions": [bad]}))

    def test_stored_shape_is_camel_case(self):
        raw = {"type": "true_false", "question": "q", "options": ["True", "False"], "correctAnswer": 1}
        assert self.generator.parse_questions(json.dumps({"questions": [raw]})) == [raw]


def test_prompt_requests_question_mix():
    generator = QuizGenerator(api_url=API_URL, api_key="k", model="m")
    messages = generator.build_messages("Dune", "Frank Herbert", "expert", 10)

    system = messages[0]["content"]
    assert "3 true/false" in system
    assert "4 multiple choice" in system
    assert "3 select-all-that-apply" in system
    assert "Frank Herbert" in messages[1]["content"]


def test_dependency_uses_settings():
    generator = get_quiz_generator()
    assert isinstance(generator, QuizGenerator)
    assert generator.model
