"""
Pytest configuration for readtrack tests

Every test gets its own in-memory SQLite database. API tests talk to the
app through httpx with get_db and the quiz generator overridden.
"""
from typing import Any, Dict, List

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from readtrack import models  # noqa: F401
from readtrack.ai_client import QuizGenerationError, get_quiz_generator
from readtrack.core.db import Base, get_db
from readtrack.main import app

SAMPLE_QUESTIONS: List[Dict[str, Any]] = [
    {
        "type": "true_false",
        "question": "Paul Atreides is the heir of House Atreides.",
        "options": ["True", "False"],
        "correctAnswer": 0,
    },
    {
        "type": "multiple_choice",
        "question": "What is the name of the desert planet?",
        "options": ["Caladan", "Giedi Prime", "Arrakis", "Kaitain"],
        "correctAnswer": 2,
    },
    {
        "type": "multiple_select",
        "question": "Which of these are Fremen?",
        "options": ["Stilgar", "Piter", "Chani", "Rabban"],
        "correctAnswers": [0, 2],
    },
]


class FakeQuizGenerator:
    """Stands in for QuizGenerator, records the calls it receives"""

    def __init__(self, questions=None, fail: bool = False):
        self.questions = questions if questions is not None else SAMPLE_QUESTIONS
        self.fail = fail
        self.calls = []

    async def generate_quiz(self, title, author, difficulty, question_count):
        self.calls.append({
            "title": title,
            "author": author,
            "difficulty": difficulty,
            "question_count": question_count,
        })
        if self.fail:
            raise QuizGenerationError("generator unavailable")
        return [dict(q) for q in self.questions]


@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def quiz_generator():
    return FakeQuizGenerator()


@pytest_asyncio.fixture
async def client(session_factory, quiz_generator):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_quiz_generator] = lambda: quiz_generator

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


def auth(user_id: str = "user-1") -> Dict[str, str]:
    return {"X-User-ID": user_id}
