"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(autouse=True)
def setup_logging():
    """Route loguru to stderr at DEBUG for the duration of a test."""
    from loguru import logger

    logger.remove()
    logger.add(
        sys.stderr,
        level="DEBUG",
        format="<level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
    )

    yield

    logger.remove()


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def database(tmp_path):
    """An open LocalDatabase in a temporary directory."""
    from langlearn.db import LocalDatabase

    db = LocalDatabase(tmp_path / "offline.db")
    db.open()
    yield db
    db.close()


@pytest.fixture
def store(database):
    """A LocalStore over a fresh temporary database."""
    from langlearn.offline import LocalStore

    return LocalStore(database)


@pytest.fixture
def base_time():
    """Fixed naive-UTC reference time."""
    return datetime(2024, 3, 1, 12, 0, 0)


@pytest.fixture
def make_response(base_time):
    """Factory for QuizResponse records spaced one minute apart."""
    from langlearn.core.models import QuizResponse

    def _make(score, topic=None, minutes=0, content_id="quiz-1", user_id="learner-1"):
        return QuizResponse(
            id=f"resp-{minutes}-{topic}",
            user_id=user_id,
            content_id=content_id,
            answers={},
            score=score,
            created_at=base_time + timedelta(minutes=minutes),
            topic=topic,
        )

    return _make


@pytest.fixture
def sample_quiz_payload():
    """A quiz content payload with two questions."""
    return {
        "kind": "quiz",
        "difficulty": 0.4,
        "questions": [
            {
                "id": "q1",
                "question": "¿Cuál es el pretérito de 'ir'?",
                "options": ["fue", "iba", "va", "irá"],
                "correctAnswer": 0,
                "type": "grammar",
                "grammarPoint": "preterite",
                "topic": "grammar",
            },
            {
                "id": "q2",
                "question": "What does 'la biblioteca' mean?",
                "options": ["bookstore", "library", "bible"],
                "correctAnswer": 1,
                "type": "vocabulary",
                "context": "school settings",
                "topic": "vocabulary",
                "difficulty": 0.6,
            },
        ],
    }
