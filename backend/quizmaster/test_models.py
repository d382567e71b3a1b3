from unittest import TestCase

from pydantic import ValidationError

from .models import TIMED_OUT, LeaderboardEntry, Question, SessionState


def _question(qid: str = "q1", correct: int = 0) -> Question:
    return Question(id=qid, text="Pick one", options=("yes", "no"), correct_index=correct)


class QuestionTests(TestCase):
    def test_needs_two_options(self):
        with self.assertRaises(ValidationError):
            Question(id="q1", text="Lonely", options=["only"], correct_index=0)

    def test_correct_index_must_point_at_an_option(self):
        with self.assertRaises(ValidationError):
            _question(correct=2)
        with self.assertRaises(ValidationError):
            _question(correct=-1)

    def test_questions_are_immutable(self):
        q = _question()
        with self.assertRaises(ValidationError):
            q.correct_index = 1


class SessionStateTests(TestCase):
    def test_current_question_follows_index(self):
        state = SessionState(questions=(_question("a"), _question("b")), current_index=1)
        self.assertEqual(state.current_question.id, "b")

    def test_finished_state_has_no_current_question(self):
        state = SessionState(questions=(_question("a"),), current_index=1, finished=True)
        self.assertIsNone(state.current_question)

    def test_timed_out_marker_is_a_valid_selection(self):
        state = SessionState(selected_answer=TIMED_OUT)
        self.assertEqual(state.selected_answer, TIMED_OUT)
        self.assertEqual(SessionState(selected_answer=0).selected_answer, 0)

    def test_snapshots_are_read_only(self):
        state = SessionState()
        with self.assertRaises(ValidationError):
            state.score = 5

    def test_dump_includes_derived_question(self):
        dumped = SessionState(questions=(_question("a"),)).model_dump(mode="json")
        self.assertEqual(dumped["current_question"]["id"], "a")


class LeaderboardEntryTests(TestCase):
    def test_blank_name_displays_as_anonymous(self):
        self.assertEqual(LeaderboardEntry(username="").display_name, "Anonymous")
        self.assertEqual(LeaderboardEntry(username="   ").display_name, "Anonymous")

    def test_name_is_kept_as_given(self):
        entry = LeaderboardEntry(username="Ada", score=3, timestamp=1)
        self.assertEqual(entry.display_name, "Ada")

    def test_negative_scores_are_rejected(self):
        with self.assertRaises(ValidationError):
            LeaderboardEntry(username="Ada", score=-1)
