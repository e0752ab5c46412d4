"""
assessment/runner.py — Timed skill assessment for one VA and one skill.

Phases: loading → intro → quiz → submitting → results. Intro also shows
errors. Scoring, question selection and eligibility live on the backend;
this class owns the phase, the countdown and the answers of the attempt.
"""
import logging
import random
from typing import Callable, List, Optional, TYPE_CHECKING

import aiosqlite

from backend.client import BackendError
from .enum import Phase
from .models import AssessmentConfig, AttemptSession, Question, Results
from .timers import CountdownTimer

if TYPE_CHECKING:
    from marketplace.session import Session
    from marketplace.notifications import Notifier
    from .gateway import AssessmentGateway
    from .history import ResultHistory

logger = logging.getLogger(__name__)

MSG_CANNOT_TAKE      = "Cannot take this assessment"
MSG_NOT_VA           = "Only virtual assistants can take assessments"
MSG_NOT_FOUND        = "Assessment not found"
MSG_LOAD_FAILED      = "Failed to load assessment"
MSG_NO_QUESTIONS     = "No questions available for this assessment"
MSG_START_FAILED     = "Failed to start assessment"
MSG_SUBMIT_FAILED    = "Failed to submit assessment"


class AssessmentRunner:
    def __init__(
        self,
        gateway: "AssessmentGateway",
        session: "Session",
        skill_id: str,
        *,
        notifier: Optional["Notifier"] = None,
        history: Optional["ResultHistory"] = None,
        shuffle: Callable[[List[Question]], None] = random.shuffle,
        tick_interval: float = 1.0,
    ):
        self.gateway = gateway
        self.session = session
        self.skill_id = skill_id
        self.notifier = notifier
        self.history = history
        self._shuffle = shuffle
        self._tick_interval = tick_interval

        self.phase = Phase.LOADING
        self.config: Optional[AssessmentConfig] = None
        self.attempt: Optional[AttemptSession] = None
        self.results: Optional[Results] = None
        self.error: Optional[str] = None
        self.timer: Optional[CountdownTimer] = None

    # ------------------------------------------------------------------ #
    # Loading
    # ------------------------------------------------------------------ #
    async def load(self):
        """Eligibility check, then config. Always ends in intro."""
        self.phase = Phase.LOADING
        self.error = None
        if not self.session.is_va:
            self.error = MSG_NOT_VA
            self.phase = Phase.INTRO
            return
        try:
            eligibility = await self.gateway.check_eligibility(self.session.va_id, self.skill_id)
            if not eligibility.can_take:
                self.error = eligibility.reason or MSG_CANNOT_TAKE
                logger.info(f"🚫 {self.session.va_id} not eligible for {self.skill_id}: {self.error}")
            else:
                self.config = await self.gateway.fetch_config(self.skill_id)
                if self.config is None:
                    self.error = MSG_NOT_FOUND
        except BackendError as e:
            logger.error(f"❌ Loading assessment {self.skill_id} failed: {e}")
            self.error = MSG_LOAD_FAILED
        self.phase = Phase.INTRO

    # ------------------------------------------------------------------ #
    # Starting
    # ------------------------------------------------------------------ #
    async def start(self):
        if self.phase is not Phase.INTRO or self.config is None:
            return
        self.phase = Phase.LOADING
        self.error = None
        self.attempt = None
        self.results = None
        try:
            questions = await self.gateway.fetch_questions(self.skill_id, self.session.va_id)
            if not questions:
                self.error = MSG_NO_QUESTIONS
                self.phase = Phase.INTRO
                return
            shuffled = list(questions)
            self._shuffle(shuffled)
            attempt_id = await self.gateway.create_attempt(
                self.session.va_id, self.skill_id, [q.question_id for q in shuffled]
            )
        except BackendError as e:
            logger.error(f"❌ Starting assessment {self.skill_id} failed: {e}")
            self.error = MSG_START_FAILED
            self.phase = Phase.INTRO
            return

        self.attempt = AttemptSession(
            attempt_id=attempt_id,
            questions=shuffled,
            seconds_remaining=self.config.time_limit_seconds,
        )
        self.phase = Phase.QUIZ
        await self._arm_timer()
        logger.info(
            f"▶️ Attempt {attempt_id} started: {len(shuffled)} questions, "
            f"{self.config.time_limit_minutes} min"
        )

    # ------------------------------------------------------------------ #
    # Quiz
    # ------------------------------------------------------------------ #
    def select_answer(self, option_index: int):
        if self.phase is not Phase.QUIZ or self.attempt is None:
            return
        self.attempt.record_answer(option_index)

    def go_next(self):
        if self.attempt is not None:
            self.attempt.move_to(self.attempt.current_index + 1)

    def go_prev(self):
        if self.attempt is not None:
            self.attempt.move_to(self.attempt.current_index - 1)

    def go_to_question(self, index: int):
        if self.attempt is not None:
            self.attempt.move_to(index)

    @property
    def is_last_question(self) -> bool:
        return (
            self.attempt is not None
            and self.attempt.current_index == len(self.attempt.questions) - 1
        )

    # ------------------------------------------------------------------ #
    # Timer
    # ------------------------------------------------------------------ #
    async def _arm_timer(self):
        if self.attempt is None or self.attempt.seconds_remaining <= 0:
            return
        self.timer = CountdownTimer(
            self.attempt.seconds_remaining,
            self._on_expire,
            tick_callback=self._on_tick,
            interval=self._tick_interval,
        )
        await self.timer.start()

    def _stop_timer(self):
        if self.timer is not None:
            self.timer.stop()
            self.timer = None

    def _on_tick(self, seconds_remaining: int):
        if self.attempt is not None:
            self.attempt.seconds_remaining = seconds_remaining

    async def _on_expire(self):
        logger.info(f"⏰ Time is up for attempt {self.attempt.attempt_id if self.attempt else '?'}")
        await self.submit()

    # ------------------------------------------------------------------ #
    # Submission
    # ------------------------------------------------------------------ #
    async def submit(self):
        """Send all answers once. A second trigger while submitting is a no-op."""
        if self.phase is not Phase.QUIZ or self.attempt is None:
            return
        self.phase = Phase.SUBMITTING
        self._stop_timer()
        attempt = self.attempt
        answers = attempt.build_answers()
        try:
            results = await self.gateway.submit_answers(attempt.attempt_id, answers)
        except BackendError as e:
            logger.error(f"❌ Submitting attempt {attempt.attempt_id} failed: {e}")
            self.error = MSG_SUBMIT_FAILED
            self.phase = Phase.QUIZ
            await self._arm_timer()
            return

        self.results = results
        self.error = None
        self.attempt = None
        self.phase = Phase.RESULTS
        logger.info(
            f"🏁 Attempt {attempt.attempt_id}: {results.score}% "
            f"({results.correct_count}/{results.total_questions}, "
            f"{'passed' if results.passed else 'failed'})"
        )
        await self._record(attempt.attempt_id, results)

    async def _record(self, attempt_id: str, results: Results):
        if self.history is not None:
            try:
                await self.history.save_result(self.session.user_id, attempt_id, self.config, results)
            except aiosqlite.Error as e:
                logger.warning(f"⚠️ Could not save result locally: {e}")
        if self.notifier is not None and results.passed:
            self.notifier.notify_assessment_passed(self.session, self.config.skill_name, results.score)

    def close(self):
        """Leaving the page: the attempt is dropped, in-flight calls are not cancelled."""
        self._stop_timer()
        self.attempt = None
