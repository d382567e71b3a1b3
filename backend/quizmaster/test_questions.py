from __future__ import annotations

import random
from unittest import IsolatedAsyncioTestCase, mock

from .db import InMemoryCollection
from .errors import FetchError
from .models import Question
from .questions import DEFAULT_QUESTIONS, QuestionSource


class QuestionSourceTests(IsolatedAsyncioTestCase):
    def setUp(self) -> None:  # noqa: D401 - standard unittest hook
        self.collection = InMemoryCollection()

    async def test_seed_defaults_only_fills_an_empty_bank(self):
        source = QuestionSource(self.collection)

        self.assertTrue(await source.seed_defaults())
        self.assertFalse(await source.seed_defaults())
        self.assertEqual(await self.collection.count_documents({}), len(DEFAULT_QUESTIONS))

    async def test_fetch_returns_shuffled_copy_of_the_bank(self):
        source = QuestionSource(self.collection, rng=random.Random(3))
        await source.seed_defaults()

        questions = await source.fetch_questions()

        expected = [q.id for q in DEFAULT_QUESTIONS]
        random.Random(3).shuffle(expected)
        self.assertEqual([q.id for q in questions], expected)
        self.assertTrue(all(isinstance(q, Question) for q in questions))

    async def test_fetch_bounds_questions_per_session(self):
        source = QuestionSource(self.collection, per_session=2)
        await source.seed_defaults()

        questions = await source.fetch_questions()

        self.assertEqual(len(questions), 2)
        self.assertEqual(len({q.id for q in questions}), 2)

    async def test_empty_bank_is_a_fetch_error(self):
        source = QuestionSource(self.collection)

        with self.assertRaises(FetchError):
            await source.fetch_questions()

    async def test_backend_failure_is_a_fetch_error(self):
        source = QuestionSource(self.collection)

        with mock.patch.object(self.collection, "find", side_effect=RuntimeError("unreachable")):
            with self.assertRaises(FetchError) as ctx:
                await source.fetch_questions()

        self.assertIn("unreachable", str(ctx.exception))

    async def test_malformed_record_is_a_fetch_error(self):
        source = QuestionSource(self.collection)
        await source.seed_defaults()
        await self.collection.insert_one({"options": ["only"], "correct_index": 3})

        with self.assertRaises(FetchError) as ctx:
            await source.fetch_questions()

        self.assertIn("invalid question record", str(ctx.exception))

    async def test_replace_rejects_duplicate_ids(self):
        source = QuestionSource(self.collection)
        q = Question(id="dup", text="?", options=("a", "b"), correct_index=0)

        with self.assertRaises(ValueError):
            await source.replace([q, q])

    async def test_replace_swaps_the_bank(self):
        source = QuestionSource(self.collection)
        await source.seed_defaults()
        fresh = [Question(id="new", text="Only one", options=("a", "b"), correct_index=1)]

        await source.replace(fresh)

        self.assertEqual([q.id for q in await source.fetch_questions()], ["new"])
