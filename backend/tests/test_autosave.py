import asyncio

from examhall.client.autosave import Autosaver


class RecordingSaver:
    def __init__(self, fail_for=()):
        self.saved = []
        self.fail_for = set(fail_for)

    async def __call__(self, draft):
        if draft["question_id"] in self.fail_for:
            raise ConnectionError("network down")
        self.saved.append(draft)
        return {"success": True}


async def test_flush_sends_latest_draft_per_question():
    saver = RecordingSaver()
    autosaver = Autosaver(saver)
    autosaver.update(1, response_text="draft")
    autosaver.update(1, response_text="final")
    autosaver.update(2, selected_option_id=7)

    assert await autosaver.flush() is True

    assert [(d["question_id"], d["response_text"], d["selected_option_id"]) for d in saver.saved] == [
        (1, "final", None),
        (2, None, 7),
    ]
    assert autosaver.pending == {}


async def test_flush_with_nothing_dirty_sends_nothing():
    saver = RecordingSaver()
    assert await Autosaver(saver).flush() is True
    assert saver.saved == []


async def test_failed_save_is_reported_and_kept_dirty():
    errors = []
    saver = RecordingSaver(fail_for={2})
    autosaver = Autosaver(saver, on_error=lambda qid, exc: errors.append((qid, type(exc))))
    autosaver.update(1, response_text="ok")
    autosaver.update(2, response_text="lost?")

    assert await autosaver.flush() is False

    assert [d["question_id"] for d in saver.saved] == [1]
    assert errors == [(2, ConnectionError)]
    assert list(autosaver.pending) == [2]

    saver.fail_for.clear()
    assert await autosaver.flush() is True
    assert autosaver.pending == {}


async def test_edit_during_save_stays_dirty():
    gate = asyncio.Event()
    saved = []

    async def slow_save(draft):
        saved.append(draft["response_text"])
        await gate.wait()

    autosaver = Autosaver(slow_save)
    autosaver.update(1, response_text="v1")
    flushing = asyncio.create_task(autosaver.flush())
    await asyncio.sleep(0)

    autosaver.update(1, response_text="v2")
    gate.set()
    await flushing

    assert saved == ["v1"]
    assert autosaver.pending[1]["response_text"] == "v2"


async def test_background_loop_saves_on_interval():
    saver = RecordingSaver()
    autosaver = Autosaver(saver, interval=0.01)
    autosaver.update(3, response_text="typed")
    autosaver.start()

    await asyncio.sleep(0.05)
    autosaver.cancel()

    assert [d["question_id"] for d in saver.saved] == [3]
