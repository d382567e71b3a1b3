import uuid
from contextlib import asynccontextmanager
from functools import partial
from typing import Dict, Optional

from fastapi import Depends, FastAPI, Header, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from .db import db, settings
from .errors import InvalidTransition
from .events import event_store
from .game import QuizEngine
from .leaderboard import LeaderboardStore
from .logging_config import configure_logging
from .models import LeaderboardView
from .questions import QuestionSource
from .schemas import (
    AdminUpsertQuestionsIn,
    AnswerIn,
    AnswerOut,
    QuizOut,
    SubmitScoreIn,
    SubmitScoreOut,
)
from .utils import now_ts

logger = configure_logging(settings.LOG_LEVEL)

question_source = QuestionSource(db.questions, per_session=settings.QUESTIONS_PER_SESSION)
leaderboard = LeaderboardStore(db.leaderboard, default_limit=settings.LEADERBOARD_LIMIT)
quizzes: Dict[str, QuizEngine] = {}
last_seen: Dict[str, float] = {}


@asynccontextmanager
async def lifespan(_: FastAPI):
    await question_source.seed_defaults()
    yield
    for quiz_id in list(quizzes):
        await discard_quiz(quiz_id)


app = FastAPI(title="QuizMaster API", lifespan=lifespan)

origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
origin_regex = settings.CORS_ORIGIN_REGEX or None

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins or ["*"],
    allow_origin_regex=origin_regex,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def require_admin(x_admin_key: Optional[str] = Header(default=None)):
    if x_admin_key != settings.ADMIN_KEY:
        raise HTTPException(status_code=401, detail="Invalid admin key")


def get_quiz(quiz_id: str) -> QuizEngine:
    engine = quizzes.get(quiz_id)
    if engine is None:
        raise HTTPException(404, "Quiz not found")
    last_seen[quiz_id] = now_ts()
    return engine


async def discard_quiz(quiz_id: str) -> None:
    engine = quizzes.pop(quiz_id, None)
    last_seen.pop(quiz_id, None)
    if engine is not None:
        await engine.close()
    await event_store.drop(quiz_id)


async def evict_idle_quizzes() -> list[str]:
    cutoff = now_ts() - settings.QUIZ_IDLE_TIMEOUT_SEC
    idle = [qid for qid in quizzes if last_seen.get(qid, 0.0) < cutoff]
    for quiz_id in idle:
        await discard_quiz(quiz_id)
    if idle:
        logger.info("Evicted %d idle quizzes", len(idle))
    return idle


@app.post("/api/quiz", response_model=QuizOut)
async def create_quiz():
    await evict_idle_quizzes()
    quiz_id = uuid.uuid4().hex
    engine = QuizEngine(question_source, leaderboard, settings, name=quiz_id[:8])
    engine.subscribe(partial(event_store.append_state, quiz_id))
    quizzes[quiz_id] = engine
    last_seen[quiz_id] = now_ts()
    await engine.start()
    return QuizOut(quiz_id=quiz_id, state=engine.state)


@app.get("/api/quiz/{quiz_id}", response_model=QuizOut)
async def get_state(quiz_id: str):
    engine = get_quiz(quiz_id)
    return QuizOut(quiz_id=quiz_id, state=engine.state)


@app.get("/api/quiz/{quiz_id}/events")
async def list_events(quiz_id: str, after: int | None = None, limit: int = 200):
    get_quiz(quiz_id)
    events = await event_store.list(quiz_id, after=after, limit=limit)
    latest_seq = events[-1]["seq"] if events else after
    return {"events": events, "latest_seq": latest_seq}


@app.post("/api/quiz/{quiz_id}/answer", response_model=AnswerOut)
async def answer(quiz_id: str, payload: AnswerIn):
    accepted = await get_quiz(quiz_id).select_answer(payload.option_index)
    return AnswerOut(accepted=accepted)


@app.post("/api/quiz/{quiz_id}/submit", response_model=SubmitScoreOut)
async def submit(quiz_id: str, payload: SubmitScoreIn):
    engine = get_quiz(quiz_id)
    try:
        await engine.submit(payload.username)
    except InvalidTransition as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    return SubmitScoreOut(submitted=engine.state.submitted, error=engine.state.error)


@app.post("/api/quiz/{quiz_id}/play-again", response_model=QuizOut)
async def play_again(quiz_id: str):
    engine = get_quiz(quiz_id)
    await event_store.reset(quiz_id)
    await engine.play_again()
    return QuizOut(quiz_id=quiz_id, state=engine.state)


@app.delete("/api/quiz/{quiz_id}")
async def close_quiz(quiz_id: str):
    get_quiz(quiz_id)
    await discard_quiz(quiz_id)
    return {"ok": True}


@app.get("/api/leaderboard", response_model=LeaderboardView)
async def get_leaderboard(limit: int | None = None):
    cap = settings.LEADERBOARD_LIMIT
    n = min(limit, cap) if limit and limit > 0 else cap
    return await leaderboard.fetch_top(n)


@app.post("/api/admin/questions")
async def upsert_questions(payload: AdminUpsertQuestionsIn, _: None = Depends(require_admin)):
    try:
        await question_source.replace(payload.questions)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    logger.info("Admin replaced question bank (%d questions)", len(payload.questions))
    return {"ok": True, "count": len(payload.questions)}


@app.get("/api/admin/verify")
async def verify(_: None = Depends(require_admin)):
    return {"ok": True}
