"""
Client for the AI quiz generator

Wraps an OpenAI-compatible chat-completions endpoint. The model is asked for
a JSON object {"questions": [...]} and every question is validated with the
QuizQuestion schema before it is stored.
"""
import json
import logging
from typing import Any, Dict, List, Optional

import httpx
from pydantic import ValidationError

from readtrack import schemas
from readtrack.core.config import get_settings
from readtrack.logic.quiz_grader import question_mix

logger = logging.getLogger(__name__)

DIFFICULTY_PROMPTS = {
    "beginner": "Ask very simple recall questions about the main characters and the most obvious plot events, suitable for someone who just started the book.",
    "easy": "Ask simple factual questions about characters, settings and major plot points.",
    "medium": "Ask about themes, character motivations, relationships and key events.",
    "hard": "Ask challenging questions about literary devices, symbolism, foreshadowing and thematic analysis.",
    "expert": "Ask expert-level questions on narrative technique, authorial intent, historical context, intertextual references and character psychology.",
}


class QuizGenerationError(Exception):
    """The generator failed or returned something that is not a valid quiz"""


class QuizGenerator:
    def __init__(
        self,
        api_url: str,
        api_key: Optional[str],
        model: str,
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None
    ):
        self.api_url = api_url
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.transport = transport

    def build_messages(self, title: str, author: str, difficulty: str, question_count: int) -> List[Dict[str, str]]:
        mix = question_mix(question_count)
        system_prompt = (
            f"You write reading comprehension quizzes about books. {DIFFICULTY_PROMPTS.get(difficulty, DIFFICULTY_PROMPTS['medium'])} "
            f"Write {question_count} questions as JSON with this mix:\n"
            f"- {mix['true_false']} true/false questions (type \"true_false\", options [\"True\", \"False\"], correctAnswer 0 or 1)\n"
            f"- {mix['multiple_choice']} multiple choice questions (type \"multiple_choice\", 4 options, correctAnswer 0-3)\n"
            f"- {mix['multiple_select']} select-all-that-apply questions (type \"multiple_select\", 4 options, correctAnswers: list of correct indices such as [0, 2])\n"
            "Format: {\"questions\": [{\"type\": string, \"question\": string, \"options\": string[], "
            "\"correctAnswer\"?: number, \"correctAnswers\"?: number[]}]}"
        )
        user_prompt = (
            f"Create a {difficulty} difficulty quiz with {question_count} mixed-type questions "
            f"for \"{title}\" by {author}."
        )
        return [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]

    def parse_questions(self, content: str) -> List[Dict[str, Any]]:
        """Validate the model output and return questions ready to store"""
        try:
            data = json.loads(content)
        except (TypeError, ValueError) as e:
            raise QuizGenerationError(f"Generator returned invalid JSON: {e}") from e

        questions = data.get("questions") if isinstance(data, dict) else None
        if not isinstance(questions, list) or not questions:
            raise QuizGenerationError("Invalid quiz format received from generator")

        try:
            validated = [schemas.QuizQuestion.model_validate(q) for q in questions]
        except ValidationError as e:
            raise QuizGenerationError(f"Generator returned malformed questions: {e.error_count()} errors") from e

        return [q.model_dump(by_alias=True, exclude_none=True) for q in validated]

    async def generate_quiz(
        self,
        title: str,
        author: str,
        difficulty: str,
        question_count: int
    ) -> List[Dict[str, Any]]:
        """
        Ask the model for a quiz.

        Raises:
            QuizGenerationError: on HTTP errors, bad JSON or invalid questions
        """
        if not self.api_key:
            raise QuizGenerationError("AI API key is not configured")

        payload = {
            "model": self.model,
            "messages": self.build_messages(title, author, difficulty, question_count),
            "response_format": {"type": "json_object"},
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(self.api_url, json=payload, headers=headers)
                response.raise_for_status()
                body = response.json()
        except httpx.HTTPError as e:
            logger.error(f"Error calling quiz generator: {str(e)}")
            raise QuizGenerationError(f"Quiz generator request failed: {e}") from e
        except ValueError as e:
            raise QuizGenerationError("Quiz generator returned a non-JSON response") from e

        try:
            content = body["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise QuizGenerationError("Quiz generator response has no message content") from e

        questions = self.parse_questions(content)
        if len(questions) != question_count:
            logger.warning(f"Generator returned {len(questions)} questions, expected {question_count}")

        logger.info(f"Generated {len(questions)} {difficulty} questions for \"{title}\"")
        return questions


def get_quiz_generator() -> QuizGenerator:
    """Dependency: generator configured from settings"""
    settings = get_settings()
    return QuizGenerator(
        api_url=settings.AI_API_URL,
        api_key=settings.AI_API_KEY,
        model=settings.AI_MODEL,
        timeout=settings.AI_TIMEOUT_SECONDS,
    )
