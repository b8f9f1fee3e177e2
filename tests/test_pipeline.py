"""Tests for scribe.session.pipeline — debounce, dedup, and merge rule."""

import asyncio

import pytest

from scribe.session.pipeline import PhrasePipeline, merge_phrase

DEBOUNCE = 0.1


class _Recorder:
    """Async commit callback that records every committed phrase."""

    def __init__(self) -> None:
        self.phrases: list[str] = []

    async def __call__(self, phrase: str) -> None:
        self.phrases.append(phrase)


@pytest.fixture
def committed() -> _Recorder:
    return _Recorder()


@pytest.fixture
def pipeline(committed):
    p = PhrasePipeline(debounce=DEBOUNCE, on_commit=committed)
    yield p
    p.close()


async def _quiesce() -> None:
    await asyncio.sleep(DEBOUNCE * 3)


# ---------------------------------------------------------------------------
# merge_phrase()
# ---------------------------------------------------------------------------


class TestMergePhrase:

    def test_first_phrase_has_no_leading_space(self):
        assert merge_phrase("", "ciao") == "ciao"

    def test_appends_with_single_space(self):
        assert merge_phrase("ciao", "come stai") == "ciao come stai"

    def test_trailing_substring_is_absorbed(self):
        assert merge_phrase("ciao come stai", "stai") == "ciao come stai"

    def test_whole_transcript_repeat_is_absorbed(self):
        assert merge_phrase("ciao", "ciao") == "ciao"

    def test_empty_phrase_leaves_transcript(self):
        assert merge_phrase("ciao", "") == "ciao"

    def test_phrase_contained_but_not_trailing_is_appended(self):
        assert merge_phrase("ciao come stai", "ciao") == "ciao come stai ciao"


# ---------------------------------------------------------------------------
# push() — quiescence
# ---------------------------------------------------------------------------


class TestQuiescence:

    async def test_single_push_commits_after_quiet(self, pipeline, committed):
        pipeline.push("ciao")
        assert committed.phrases == []
        await _quiesce()
        assert committed.phrases == ["ciao"]

    async def test_burst_commits_only_latest(self, pipeline, committed):
        """Values arriving inside the window are superseded, never committed."""
        for text in ("ciao", "ciao come", "ciao come stai"):
            pipeline.push(text)
            await asyncio.sleep(DEBOUNCE / 5)
        await _quiesce()
        assert committed.phrases == ["ciao come stai"]

    async def test_each_push_restarts_the_window(self, pipeline, committed):
        pipeline.push("uno")
        await asyncio.sleep(DEBOUNCE * 0.6)
        pipeline.push("uno due")
        await asyncio.sleep(DEBOUNCE * 0.6)
        # Over one full window since the first push, but not since the last.
        assert committed.phrases == []
        await _quiesce()
        assert committed.phrases == ["uno due"]

    async def test_separate_pauses_commit_in_order(self, pipeline, committed):
        pipeline.push("primo")
        await _quiesce()
        pipeline.push("secondo")
        await _quiesce()
        assert committed.phrases == ["primo", "secondo"]

    async def test_has_pending_until_commit(self, pipeline):
        pipeline.push("ciao")
        assert pipeline.has_pending()
        await _quiesce()
        assert not pipeline.has_pending()


# ---------------------------------------------------------------------------
# Normalization and dedup
# ---------------------------------------------------------------------------


class TestDedup:

    async def test_phrase_is_trimmed(self, pipeline, committed):
        pipeline.push("  ciao  ")
        await _quiesce()
        assert committed.phrases == ["ciao"]

    async def test_repeat_of_previous_commit_is_suppressed(self, pipeline, committed):
        pipeline.push("ciao")
        await _quiesce()
        pipeline.push("ciao")
        await _quiesce()
        assert committed.phrases == ["ciao"]

    async def test_repeat_differing_only_by_whitespace_is_suppressed(
        self, pipeline, committed
    ):
        pipeline.push("ciao")
        await _quiesce()
        pipeline.push(" ciao ")
        await _quiesce()
        assert committed.phrases == ["ciao"]

    async def test_non_consecutive_repeat_is_committed(self, pipeline, committed):
        for text in ("ciao", "stai", "ciao"):
            pipeline.push(text)
            await _quiesce()
        assert committed.phrases == ["ciao", "stai", "ciao"]

    async def test_blank_phrase_is_dropped(self, pipeline, committed):
        pipeline.push("   ")
        await _quiesce()
        assert committed.phrases == []

    async def test_reset_forgets_last_commit(self, pipeline, committed):
        pipeline.push("ciao")
        await _quiesce()
        pipeline.reset()
        pipeline.push("ciao")
        await _quiesce()
        assert committed.phrases == ["ciao", "ciao"]


# ---------------------------------------------------------------------------
# flush() / discard() / close()
# ---------------------------------------------------------------------------


class TestShutdownModes:

    async def test_flush_returns_pending_phrase(self, pipeline, committed):
        pipeline.push(" ciao come ")
        assert pipeline.flush() == "ciao come"
        await _quiesce()
        # The phrase went to the caller, not through the timer.
        assert committed.phrases == []

    async def test_flush_empty_returns_none(self, pipeline):
        assert pipeline.flush() is None

    async def test_flush_applies_dedup(self, pipeline):
        pipeline.push("ciao")
        await _quiesce()
        pipeline.push("ciao")
        assert pipeline.flush() is None

    async def test_flush_cancels_timer(self, pipeline):
        pipeline.push("ciao")
        task = pipeline._timer
        assert task is not None
        pipeline.flush()
        assert pipeline._timer is None
        await asyncio.sleep(0)
        assert task.done()

    async def test_discard_drops_pending(self, pipeline, committed):
        pipeline.push("ciao")
        pipeline.discard()
        await _quiesce()
        assert committed.phrases == []
        assert not pipeline.has_pending()

    async def test_discard_when_empty_is_noop(self, pipeline):
        pipeline.discard()
        assert not pipeline.has_pending()

    async def test_close_refuses_input(self, pipeline, committed):
        pipeline.close()
        pipeline.push("ciao")
        assert not pipeline.has_pending()
        await _quiesce()
        assert committed.phrases == []


class TestCallbackFailure:

    async def test_failing_callback_does_not_break_pipeline(self):
        calls: list[str] = []

        async def flaky(phrase: str) -> None:
            calls.append(phrase)
            if len(calls) == 1:
                raise RuntimeError("boom")

        pipeline = PhrasePipeline(debounce=DEBOUNCE, on_commit=flaky)
        pipeline.push("uno")
        await _quiesce()
        pipeline.push("due")
        await _quiesce()
        assert calls == ["uno", "due"]
