from __future__ import annotations

import asyncio
import logging
from functools import partial
from typing import Any, Awaitable, Callable, List, Optional, Protocol, Set

from .db import Settings, get_settings
from .errors import FetchError, InvalidTransition
from .models import TIMED_OUT, LeaderboardEntry, Question, Selection, SessionState
from .scoring import score_delta
from .timer import CountdownTimer
from .utils import now_ms

logger = logging.getLogger(__name__)

StateListener = Callable[[SessionState], Awaitable[Any]]


class QuestionProvider(Protocol):
    async def fetch_questions(self) -> List[Question]: ...


class EntryWriter(Protocol):
    async def submit_entry(self, entry: LeaderboardEntry) -> LeaderboardEntry: ...


class QuizEngine:
    """Runs one timed quiz session and owns its state.

    Every deferred step (countdown tick, expiry, reveal, display) carries the
    epoch it was scheduled in. The epoch moves on at each session start,
    question entry and finish, so a callback from a superseded question does
    nothing. All transitions run under ``self._lock``.
    """

    def __init__(
        self,
        source: QuestionProvider,
        leaderboard: EntryWriter,
        settings: Optional[Settings] = None,
        *,
        name: str = "quiz",
    ):
        self.source = source
        self.leaderboard = leaderboard
        self.settings = settings or get_settings()
        self.name = name
        self._state = SessionState(loading=True)
        self._epoch = 0
        self._lock = asyncio.Lock()
        self._timer: Optional[CountdownTimer] = None
        self._pending: Set[asyncio.Task] = set()
        self._listeners: List[StateListener] = []

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def timer(self) -> Optional[CountdownTimer]:
        return self._timer

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Register an async listener called with every new snapshot.

        Listeners run while the engine lock is held, so they must not await
        engine operations directly. Schedule them with ``asyncio.create_task``.
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def start(self) -> None:
        async with self._lock:
            self._cancel_all()
            self._epoch += 1
            epoch = self._epoch
            await self._replace(SessionState(loading=True))

        try:
            questions = await self.source.fetch_questions()
        except FetchError as exc:
            logger.warning("[%s] question load failed: %s", self.name, exc)
            async with self._lock:
                if epoch == self._epoch:
                    await self._commit(loading=False, error=f"Failed to load quiz: {exc}")
            return

        async with self._lock:
            if epoch != self._epoch:
                logger.debug("[%s] dropping questions for a superseded session", self.name)
                return
            if not questions:
                await self._commit(loading=False, error="Failed to load quiz: no questions available")
                return

            # Published by _enter_question together with the first countdown value.
            self._state = SessionState(questions=tuple(questions))
            logger.info("[%s] session started with %d questions", self.name, len(questions))
            await self._enter_question(0)

    async def play_again(self) -> None:
        await self.start()

    async def select_answer(self, index: int) -> bool:
        async with self._lock:
            s = self._state
            question = s.current_question
            if s.loading or s.finished or question is None or s.selected_answer is not None:
                return False
            if isinstance(index, bool) or not 0 <= index < len(question.options):
                return False

            self._cancel_timer()
            await self._commit(selected_answer=index)
            logger.info("[%s] question %s answered with option %d", self.name, question.id, index)
            self._schedule(self.settings.REVEAL_DELAY_SEC, self._resolve, index)
            return True

    async def submit(self, display_name: str) -> bool:
        async with self._lock:
            s = self._state
            if not s.finished:
                raise InvalidTransition("Cannot submit a score before the quiz is finished")
            if s.submitted or s.submitting:
                return False

            epoch = self._epoch
            entry = LeaderboardEntry(username=display_name, score=s.score, timestamp=now_ms())
            await self._commit(submitting=True)

        try:
            stored = await self.leaderboard.submit_entry(entry)
        except FetchError as exc:
            logger.warning("[%s] score submission failed: %s", self.name, exc)
            async with self._lock:
                if epoch == self._epoch:
                    await self._commit(submitting=False, error=f"Failed to submit score: {exc}")
            return False
        except BaseException:
            # Interrupted write: leave the action retryable.
            async with self._lock:
                if epoch == self._epoch:
                    await self._commit(submitting=False)
            raise

        async with self._lock:
            if epoch != self._epoch:
                return False
            await self._commit(submitting=False, submitted=True, error=None)
        logger.info("[%s] score %d submitted as entry %s", self.name, entry.score, stored.id)
        return True

    async def close(self) -> None:
        async with self._lock:
            timer = self._timer
            self._cancel_all()
            self._epoch += 1
        if timer is not None:
            await timer.wait()

    # Transitions below expect ``self._lock`` to be held.

    async def _enter_question(self, index: int) -> None:
        self._cancel_timer()
        self._epoch += 1
        epoch = self._epoch
        limit = self.settings.QUESTION_TIME_LIMIT

        await self._commit(current_index=index, time_left=limit, selected_answer=None)

        self._timer = CountdownTimer(
            limit,
            partial(self._on_tick, epoch),
            partial(self._on_expire, epoch),
            interval=self.settings.TICK_INTERVAL_SEC,
            name=f"{self.name}-q{index}",
        )
        self._timer.start()

    async def _resolve(self, selection: Selection) -> None:
        s = self._state
        question = s.current_question
        if question is None:
            return

        delta = score_delta(question.correct_index, selection)
        await self._commit(score=s.score + delta, selected_answer=selection)
        logger.info(
            "[%s] question %s resolved: %s (score %d)",
            self.name,
            question.id,
            "correct" if delta else "incorrect",
            s.score + delta,
        )
        self._schedule(self.settings.DISPLAY_DELAY_SEC, self._advance)

    async def _advance(self) -> None:
        s = self._state
        next_index = s.current_index + 1
        if next_index < len(s.questions):
            await self._enter_question(next_index)
            return

        self._cancel_timer()
        self._epoch += 1
        await self._commit(current_index=len(s.questions), finished=True, time_left=0, submitted=False)
        logger.info("[%s] session finished with score %d/%d", self.name, s.score, len(s.questions))

    async def _on_tick(self, epoch: int, remaining: int) -> None:
        async with self._lock:
            if epoch != self._epoch or self._state.selected_answer is not None:
                logger.debug("[%s] stale tick ignored", self.name)
                return
            await self._commit(time_left=remaining)

    async def _on_expire(self, epoch: int) -> None:
        async with self._lock:
            if epoch != self._epoch or self._state.selected_answer is not None:
                logger.debug("[%s] stale expiry ignored", self.name)
                return
            self._cancel_timer()
            question = self._state.current_question
            logger.info("[%s] question %s timed out", self.name, question.id if question else "?")
            await self._resolve(TIMED_OUT)

    def _schedule(self, delay: float, callback: Callable[..., Awaitable[None]], *args: Any) -> None:
        epoch = self._epoch

        async def _run() -> None:
            await asyncio.sleep(delay)
            async with self._lock:
                if epoch != self._epoch:
                    logger.debug("[%s] stale %s ignored", self.name, getattr(callback, "__name__", "callback"))
                    return
                await callback(*args)

        task = asyncio.create_task(_run())
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _cancel_all(self) -> None:
        self._cancel_timer()
        current = asyncio.current_task()
        for task in list(self._pending):
            if task is not current:
                task.cancel()

    async def _commit(self, **changes: Any) -> None:
        await self._replace(self._state.model_copy(update=changes))

    async def _replace(self, state: SessionState) -> None:
        self._state = state
        for listener in list(self._listeners):
            try:
                await listener(state)
            except Exception:
                logger.exception("[%s] state listener failed", self.name)
