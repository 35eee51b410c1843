"""
Quiz grading

Pure functions, no database access. Questions are the JSON dicts stored on
Quiz.questions:

    {"type": "multiple_select", "question": "...", "options": [...],
     "correctAnswers": [0, 2]}
    {"type": "true_false", "question": "...", "options": ["True", "False"],
     "correctAnswer": 0}

Grading is total: any answers list (short, long, wrong shapes, None) yields
a score between 0 and len(questions).
"""
from typing import Any, Dict, Optional, Sequence
import logging

from readtrack.models import QuestionType

logger = logging.getLogger(__name__)


def _as_index_set(answer: Any) -> set:
    """Collect the int indices of a multiple_select answer, anything else is empty"""
    if not isinstance(answer, (list, tuple, set)):
        return set()
    return {a for a in answer if isinstance(a, int) and not isinstance(a, bool)}


def grade_question(question: Dict[str, Any], answer: Any) -> bool:
    """
    Grade one question.

    - multiple_select: exact set equality with correctAnswers, no partial credit
    - true_false, multiple_choice and unknown types: answer == correctAnswer
    - a skipped multiple_select (None) counts as selecting nothing, so it is
      correct only when correctAnswers is empty
    - a skipped single-answer question is incorrect
    """
    if question.get('type') == QuestionType.MULTIPLE_SELECT.value:
        correct = _as_index_set(question.get('correctAnswers') or [])
        submitted = _as_index_set(answer)
        return submitted == correct

    if answer is None or isinstance(answer, bool) or not isinstance(answer, int):
        return False
    return answer == question.get('correctAnswer')


def score_quiz(questions: Sequence[Dict[str, Any]], answers: Optional[Sequence[Any]]) -> int:
    """
    Count correctly answered questions.

    Answers align with questions by position. Missing trailing answers are
    treated as unanswered and extra answers are ignored.
    """
    answers = list(answers or [])
    score = 0
    for i, question in enumerate(questions):
        answer = answers[i] if i < len(answers) else None
        if grade_question(question, answer):
            score += 1

    logger.debug(f"Quiz graded: {score}/{len(questions)} ({len(answers)} answers submitted)")
    return score


def score_percentage(score: int, question_count: int) -> int:
    """Display transform: score as a rounded percentage of the question count"""
    if question_count <= 0:
        return 0
    return round(score / question_count * 100)


def question_mix(question_count: int) -> Dict[str, int]:
    """
    How many questions of each type to request from the generator.

    10 questions -> 3 true/false, 4 multiple choice, 3 multiple select.
    Other lengths keep the same 30/40/30 split, rounding into multiple choice.
    """
    true_false = round(question_count * 0.3)
    multiple_select = round(question_count * 0.3)
    multiple_choice = max(question_count - true_false - multiple_select, 0)
    return {
        QuestionType.TRUE_FALSE.value: true_false,
        QuestionType.MULTIPLE_CHOICE.value: multiple_choice,
        QuestionType.MULTIPLE_SELECT.value: multiple_select,
    }

