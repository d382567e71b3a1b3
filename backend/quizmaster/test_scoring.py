from unittest import TestCase

from .models import TIMED_OUT
from .scoring import is_correct, score_delta


class ScoreDeltaTests(TestCase):
    def test_exact_match_scores_one(self):
        self.assertEqual(score_delta(2, 2), 1)
        self.assertTrue(is_correct(2, 2))

    def test_wrong_index_scores_zero(self):
        self.assertEqual(score_delta(2, 1), 0)

    def test_timeout_never_matches_index_zero(self):
        self.assertEqual(score_delta(0, TIMED_OUT), 0)
        self.assertFalse(is_correct(0, TIMED_OUT))

    def test_timeout_scores_like_a_wrong_answer(self):
        self.assertEqual(score_delta(1, TIMED_OUT), score_delta(1, 3))

    def test_bool_is_not_an_option_index(self):
        self.assertEqual(score_delta(1, True), 0)
        self.assertEqual(score_delta(0, False), 0)
