"""
Client-side driver for one exam attempt.

Ties the API client, the countdown and the autosaver together the way an
exam page does: answers are autosaved periodically and on navigation, and
the exam is submitted either by the user or by the timer running out.
Exactly one submit request is sent per attempt no matter how many triggers
fire, unless a user retries after a failure.
"""
import asyncio
import logging
from datetime import datetime
from typing import Callable, Optional

import httpx

from .api import ApiError, ExamApiClient
from .autosave import Autosaver
from .timer import ExamTimer

logger = logging.getLogger(__name__)


class SubmissionFailed(Exception):
    """The submit request did not go through; the exam is NOT submitted."""

    def __init__(self, triggered_by: str, cause: Exception):
        self.triggered_by = triggered_by
        self.cause = cause
        super().__init__(f"Submission triggered by {triggered_by} failed: {cause}")


def _parse_instant(value) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


class ExamAttempt:
    def __init__(self, api: ExamApiClient, exam_id: int, autosave_interval: float = 30.0,
                 tick_interval: float = 1.0, clock: Optional[Callable[[], datetime]] = None,
                 on_save_error: Optional[Callable[[int, Exception], None]] = None,
                 on_submit_error: Optional[Callable[[SubmissionFailed], None]] = None):
        self.api = api
        self.exam_id = exam_id
        self.autosave_interval = autosave_interval
        self.tick_interval = tick_interval
        self._clock = clock
        self._on_save_error = on_save_error
        self._on_submit_error = on_submit_error

        self.session_id: Optional[int] = None
        self.state: Optional[dict] = None
        self.result: Optional[dict] = None
        self.timer: Optional[ExamTimer] = None
        self.autosaver: Optional[Autosaver] = None
        self._submit_task: Optional[asyncio.Task] = None

    @property
    def submitted(self) -> bool:
        return self.result is not None

    async def begin(self) -> dict:
        session = await self.api.start(self.exam_id)
        self.session_id = session["id"]
        self.state = await self.api.get_active(self.session_id)

        self.autosaver = Autosaver(self._save_draft, interval=self.autosave_interval, on_error=self._on_save_error)
        self.timer = ExamTimer(
            _parse_instant(self.state["session"]["started_at"]),
            self.state["exam"]["time_limit"],
            on_time_up=self._on_time_up,
            tick_interval=self.tick_interval,
            clock=self._clock,
        )
        self.autosaver.start()
        self.timer.start()
        logger.info("Attempt on exam %s running as session %s", self.exam_id, self.session_id)
        return self.state

    async def _save_draft(self, draft: dict) -> dict:
        return await self.api.save_response(self.session_id, **draft)

    def answer(self, question_id: int, response_text: Optional[str] = None,
               selected_option_id: Optional[int] = None) -> None:
        self.autosaver.update(question_id, response_text=response_text, selected_option_id=selected_option_id)

    async def navigate(self) -> bool:
        """Save pending answers right away, as when moving to another question."""
        return await self.autosaver.flush()

    async def submit(self, triggered_by: str = "user") -> dict:
        if self.result is not None:
            return self.result
        if self._submit_task is None:
            self._submit_task = asyncio.create_task(self._do_submit(triggered_by))
        task = self._submit_task
        try:
            return await asyncio.shield(task)
        except SubmissionFailed:
            if self._submit_task is task:
                self._submit_task = None
            raise

    async def _do_submit(self, triggered_by: str) -> dict:
        # last chance to persist drafts; a failure here must not block submission
        await self.autosaver.flush()
        try:
            result = await self.api.submit(self.session_id)
        except (ApiError, httpx.HTTPError) as exc:
            result = await self._closed_by_server(exc)
            if result is None:
                logger.error("Submit of session %s (%s) failed: %s", self.session_id, triggered_by, exc)
                raise SubmissionFailed(triggered_by, exc) from exc
        self.result = result
        self.autosaver.cancel()
        if not self.timer.fired:
            self.timer.cancel()
        logger.info("Session %s submitted by %s with %s points", self.session_id, triggered_by,
                    result.get("total_points"))
        return result

    async def _closed_by_server(self, exc: Exception) -> Optional[dict]:
        """
        After a 404 on submit, check whether the server already closed the
        session (it auto-submits overdue sessions on save or read). If so,
        the attempt counts as submitted and its result is built from the
        session; otherwise None.
        """
        if not isinstance(exc, ApiError) or exc.status_code != 404:
            return None
        try:
            state = await self.api.get_active(self.session_id)
        except (ApiError, httpx.HTTPError) as lookup_exc:
            logger.warning("Could not check session %s after failed submit: %s", self.session_id, lookup_exc)
            return None
        session = state["session"]
        if session["status"] == "in_progress":
            return None
        self.state = state
        logger.warning("Session %s was already closed by the server (%s)", self.session_id, session["status"])
        return {
            "success": True,
            "total_points": session.get("total_points"),
            "submitted_late": session.get("submitted_late", False),
        }

    async def _on_time_up(self) -> None:
        try:
            await self.submit(triggered_by="timer")
        except SubmissionFailed as exc:
            if self._on_submit_error is not None:
                self._on_submit_error(exc)

    async def close(self) -> None:
        if self.autosaver is not None:
            self.autosaver.cancel()
        if self.timer is not None:
            self.timer.cancel()
