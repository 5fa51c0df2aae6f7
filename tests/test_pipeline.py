"""Tests for pipeline.py - serialized processing and asynchronous cleanup."""

import logging
import threading
from unittest.mock import MagicMock, patch

import pytest

from stream_dictate.fragments import TranscriptionFragment
from stream_dictate.llm_cleanup import LLMCleanupError
from stream_dictate.pipeline import DictationPipeline
from stream_dictate.session import ReconciliationSession
from stream_dictate.sink import BufferTextSink, Insert

FRAGMENTS = [
    TranscriptionFragment("hel", False, 0),
    TranscriptionFragment("hello", False, 1),
    TranscriptionFragment("hello", True, 2),
    TranscriptionFragment("wor", False, 3),
    TranscriptionFragment("world", False, 4),
    TranscriptionFragment("world", True, 5),
]


def make_pipeline(**kwargs):
    return DictationPipeline(ReconciliationSession(), BufferTextSink(), **kwargs)


@pytest.fixture
def pipeline():
    pipeline = make_pipeline()
    yield pipeline
    pipeline.stop()


class TestSynchronousProcessing:
    """Tests for process()."""

    def test_operations_reach_the_sink(self, pipeline):
        for fragment in FRAGMENTS:
            pipeline.process(fragment)

        assert pipeline.sink.current_value() == "Hello world "
        assert pipeline.session.finalized_text == "Hello world "

    def test_returns_applied_operations(self, pipeline):
        assert pipeline.process(TranscriptionFragment("hi", True)) == [Insert("Hi ")]


class TestWorker:
    """Tests for the background worker."""

    def test_submitted_fragments_are_processed_in_order(self, pipeline):
        pipeline.submit_all(FRAGMENTS)
        pipeline.join()

        assert pipeline.sink.current_value() == "Hello world "

    def test_stop_resets_session(self):
        pipeline = make_pipeline()
        pipeline.submit_all(FRAGMENTS)

        assert pipeline.stop() == []
        assert pipeline.sink.current_value() == "Hello world "
        assert pipeline.session.is_idle
        assert pipeline.session.epoch == 1

    def test_worker_survives_errors(self, pipeline, caplog):
        with patch.object(
            pipeline.session, "handle_fragment", side_effect=[RuntimeError("boom"), []]
        ) as mock_handle:
            with caplog.at_level(logging.ERROR, logger="stream_dictate"):
                pipeline.submit(TranscriptionFragment("one"))
                pipeline.submit(TranscriptionFragment("two"))
                pipeline.join()

        assert mock_handle.call_count == 2
        assert "Failed to process fragment" in caplog.text


class TestCleanup:
    """Tests for the optional AI cleaner."""

    def test_cleaned_text_is_committed(self):
        pipeline = make_pipeline(cleaner=lambda text: text.upper())
        try:
            operations = pipeline.process(TranscriptionFragment("hello there", True))
        finally:
            pipeline.stop()

        assert operations == [Insert("HELLO THERE ")]
        assert pipeline.sink.current_value() == "HELLO THERE "

    def test_cleaned_finals_track_sequence(self):
        pipeline = make_pipeline(cleaner=lambda text: text)
        try:
            pipeline.process(TranscriptionFragment("hello", True, 7))
            assert pipeline.session.state.last_sequence == 7
        finally:
            pipeline.stop()

    def test_interims_skip_the_cleaner(self):
        cleaner = MagicMock(return_value="unused")
        pipeline = make_pipeline(cleaner=cleaner)
        try:
            pipeline.process(TranscriptionFragment("hello", False))
        finally:
            pipeline.stop()

        cleaner.assert_not_called()

    def test_cleaner_error_falls_back_to_local_text(self, caplog):
        pipeline = make_pipeline(cleaner=MagicMock(side_effect=LLMCleanupError("boom")))
        try:
            with caplog.at_level(logging.WARNING, logger="stream_dictate"):
                pipeline.process(TranscriptionFragment("hello there", True))
        finally:
            pipeline.stop()

        assert pipeline.sink.current_value() == "Hello there "
        assert "AI cleanup failed" in caplog.text

    def test_empty_cleaner_result_falls_back(self):
        pipeline = make_pipeline(cleaner=lambda text: "   ")
        try:
            pipeline.process(TranscriptionFragment("hello there", True))
        finally:
            pipeline.stop()

        assert pipeline.sink.current_value() == "Hello there "

    def test_cleaner_timeout_falls_back(self, caplog):
        release = threading.Event()

        def slow_cleaner(text):
            release.wait(5)
            return "too late"

        pipeline = make_pipeline(cleaner=slow_cleaner, cleaner_timeout=0.05)
        try:
            with caplog.at_level(logging.WARNING, logger="stream_dictate"):
                pipeline.process(TranscriptionFragment("hello there", True))
        finally:
            release.set()
            pipeline.stop()

        assert pipeline.sink.current_value() == "Hello there "
        assert "timed out" in caplog.text

    def test_cleanup_finishing_after_reset_is_discarded(self):
        started = threading.Event()
        release = threading.Event()

        def blocking_cleaner(text):
            started.set()
            release.wait(5)
            return text

        pipeline = make_pipeline(cleaner=blocking_cleaner, cleaner_timeout=5)
        results = []
        worker = threading.Thread(
            target=lambda: results.append(
                pipeline.process(TranscriptionFragment("hello there", True))
            )
        )
        worker.start()
        try:
            assert started.wait(5)
            pipeline.reset()
            release.set()
            worker.join(5)
        finally:
            release.set()
            pipeline.stop()

        assert results == [[]]
        assert pipeline.sink.current_value() == ""
        assert pipeline.session.finalized_text == ""


class TestBlockMode:
    """Tests for block mode and silence handling."""

    def test_finals_are_flushed_together(self):
        pipeline = make_pipeline(block_mode=True)

        assert pipeline.process(TranscriptionFragment("hello", False)) == []
        assert pipeline.process(TranscriptionFragment("hello there", True)) == []
        assert pipeline.process(TranscriptionFragment("general kenobi", True)) == []
        assert pipeline.sink.current_value() == ""

        assert pipeline.flush() == [Insert("Hello there general kenobi ")]
        assert pipeline.sink.current_value() == "Hello there general kenobi "
        pipeline.stop()

    def test_stop_flushes_block_text(self):
        pipeline = make_pipeline(block_mode=True)
        pipeline.process(TranscriptionFragment("see you soon", True))

        assert pipeline.stop() == [Insert("See you soon ")]

    def test_flush_with_nothing_accumulated(self):
        pipeline = make_pipeline(block_mode=True)
        assert pipeline.flush() == []

    def test_silence_resets_session(self, pipeline):
        pipeline.process(TranscriptionFragment("hello", True))

        assert pipeline.handle_silence() == 1
        assert pipeline.session.finalized_text == ""
        assert pipeline.process(TranscriptionFragment("again", True)) == [Insert("Again ")]
