from typing import List, Literal, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

ANONYMOUS_NAME = "Anonymous"

# Distinguished selection recorded when a question's countdown runs out.
TIMED_OUT: Literal["timed_out"] = "timed_out"

Selection = Union[int, Literal["timed_out"]]


class Question(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    text: str
    options: Tuple[str, ...]
    correct_index: int

    @model_validator(mode="after")
    def _check_options(self) -> "Question":
        if len(self.options) < 2:
            raise ValueError(f"Question {self.id!r} needs at least two options")
        if not 0 <= self.correct_index < len(self.options):
            raise ValueError(
                f"Question {self.id!r} has correct_index {self.correct_index} "
                f"outside 0..{len(self.options) - 1}"
            )
        return self


# States: loading -> in question -> (resolving) -> in question | finished
class SessionState(BaseModel):
    """Read-only snapshot of one quiz session.

    The engine never mutates a snapshot; every transition publishes a new one.
    """

    model_config = ConfigDict(frozen=True)

    questions: Tuple[Question, ...] = ()
    current_index: int = 0
    score: int = 0
    time_left: int = 0
    selected_answer: Optional[Selection] = None
    finished: bool = False
    submitted: bool = False
    submitting: bool = False
    loading: bool = False
    error: Optional[str] = None

    @computed_field
    @property
    def current_question(self) -> Optional[Question]:
        if self.finished or not 0 <= self.current_index < len(self.questions):
            return None
        return self.questions[self.current_index]


class LeaderboardEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    username: str = ""
    score: int = Field(default=0, ge=0)
    timestamp: int = 0  # epoch milliseconds
    id: Optional[str] = None

    @property
    def display_name(self) -> str:
        return self.username.strip() or ANONYMOUS_NAME


class RankedEntry(BaseModel):
    rank: int
    display_name: str
    score: int
    timestamp: int
    id: Optional[str] = None


class LeaderboardView(BaseModel):
    entries: List[RankedEntry] = Field(default_factory=list)
    error: Optional[str] = None
