from .models import TIMED_OUT, Selection

CORRECT_POINTS = 1


def is_correct(correct_index: int, selection: Selection) -> bool:
    """True only for the exact correct option index.

    ``TIMED_OUT`` never matches, not even index 0, and neither does a bool.
    """
    if selection == TIMED_OUT or isinstance(selection, bool) or not isinstance(selection, int):
        return False
    return selection == correct_index


def score_delta(correct_index: int, selection: Selection) -> int:
    return CORRECT_POINTS if is_correct(correct_index, selection) else 0
