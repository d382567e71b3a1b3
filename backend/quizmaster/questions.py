from __future__ import annotations

import logging
import random
from typing import Any, List, Optional, Sequence

from pydantic import ValidationError

from .errors import FetchError
from .models import Question

logger = logging.getLogger(__name__)

DEFAULT_QUESTIONS: List[Question] = [
    Question(
        id="q1",
        text="What is the official language for Android development?",
        options=("Java", "Kotlin", "Dart", "Swift"),
        correct_index=1,
    ),
    Question(
        id="q2",
        text="Which architectural component survives configuration changes?",
        options=("Activity", "Fragment", "ViewModel", "Intent"),
        correct_index=2,
    ),
    Question(
        id="q3",
        text="What is a 'coroutine'?",
        options=("A thread", "A light-weight thread", "A function", "An Activity"),
        correct_index=1,
    ),
    Question(
        id="q4",
        text="What does 'MVVM' stand for?",
        options=("Model-View-View-Model", "Model-View-ViewModel", "Main-View-ViewModel", "Model-Value-View-Model"),
        correct_index=1,
    ),
    Question(
        id="q5",
        text="Which file defines app permissions?",
        options=("build.gradle", "MainActivity.kt", "styles.xml", "AndroidManifest.xml"),
        correct_index=3,
    ),
]


class QuestionSource:
    """Reads the question bank and deals out a shuffled set per session."""

    def __init__(self, collection: Any, *, per_session: Optional[int] = None, rng: Optional[random.Random] = None):
        self.collection = collection
        self.per_session = per_session
        self._rng = rng or random.Random()

    async def seed_defaults(self) -> bool:
        """Load the built-in bank if the collection is empty. Returns True if seeded."""
        if await self.collection.count_documents({}):
            return False
        await self.collection.insert_many([q.model_dump() for q in DEFAULT_QUESTIONS])
        logger.info("Seeded question bank with %d default questions", len(DEFAULT_QUESTIONS))
        return True

    async def replace(self, questions: Sequence[Question]) -> None:
        ids = [q.id for q in questions]
        if len(set(ids)) != len(ids):
            raise ValueError("Question ids must be unique")
        if not questions:
            raise ValueError("At least one question is required")

        await self.collection.delete_many({})
        await self.collection.insert_many([q.model_dump() for q in questions])
        logger.info("Question bank replaced with %d questions", len(questions))

    async def fetch_questions(self) -> List[Question]:
        try:
            docs = await self.collection.find({}).to_list()
        except Exception as exc:
            raise FetchError(f"question bank unavailable ({exc})") from exc

        try:
            questions = [Question(**{k: v for k, v in doc.items() if k != "_id"}) for doc in docs]
        except ValidationError as exc:
            raise FetchError(f"invalid question record ({exc.error_count()} errors)") from exc

        if not questions:
            raise FetchError("no questions available")

        self._rng.shuffle(questions)
        if self.per_session:
            questions = questions[: self.per_session]
        return questions
