import asyncio
import logging
from typing import Awaitable, Callable, Dict, Optional

logger = logging.getLogger(__name__)

SaveFn = Callable[[dict], Awaitable[object]]


class Autosaver:
    """
    Best-effort durability for answers typed during an attempt.

    Answers are kept as drafts keyed by question id. ``flush`` sends every
    dirty draft (used on question navigation), and a background loop calls it
    every ``interval`` seconds. A failed save keeps the draft dirty for the
    next attempt and is reported to ``on_error``; it never raises into the
    caller's timer or navigation.
    """

    def __init__(self, save: SaveFn, interval: float = 30.0,
                 on_error: Optional[Callable[[int, Exception], None]] = None,
                 on_saved: Optional[Callable[[int], None]] = None):
        self._save = save
        self.interval = interval
        self._on_error = on_error
        self._on_saved = on_saved
        self._dirty: Dict[int, dict] = {}
        self._lock = asyncio.Lock()
        self._task: Optional[asyncio.Task] = None

    @property
    def pending(self) -> Dict[int, dict]:
        return dict(self._dirty)

    def update(self, question_id: int, response_text: Optional[str] = None,
               selected_option_id: Optional[int] = None) -> None:
        self._dirty[question_id] = {
            "question_id": question_id,
            "response_text": response_text,
            "selected_option_id": selected_option_id,
        }

    async def flush(self) -> bool:
        """Save all dirty drafts. Returns False if any save failed."""
        async with self._lock:
            ok = True
            for question_id, draft in list(self._dirty.items()):
                try:
                    await self._save(draft)
                except Exception as exc:
                    ok = False
                    logger.warning("Autosave failed for question %s: %s", question_id, exc)
                    if self._on_error is not None:
                        self._on_error(question_id, exc)
                    continue
                # a newer edit made during the save stays dirty
                if self._dirty.get(question_id) is draft:
                    del self._dirty[question_id]
                if self._on_saved is not None:
                    self._on_saved(question_id)
            return ok

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            await self.flush()

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run())
        return self._task

    def cancel(self) -> None:
        if self._task is not None and not self._task.done():
            self._task.cancel()
