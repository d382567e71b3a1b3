from pydantic import BaseModel, Field
from typing import List, Optional
from .models import Question, SessionState


class AdminUpsertQuestionsIn(BaseModel):
    questions: List[Question] = Field(min_length=1)


class AnswerIn(BaseModel):
    option_index: int


class SubmitScoreIn(BaseModel):
    username: str = ""


class QuizOut(BaseModel):
    quiz_id: str
    state: SessionState


class AnswerOut(BaseModel):
    accepted: bool


class SubmitScoreOut(BaseModel):
    submitted: bool
    error: Optional[str] = None
