"""Serialized fragment processing with optional asynchronous AI cleanup."""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError

from stream_dictate.config import DEFAULT_LLM_TIMEOUT
from stream_dictate.fragments import TranscriptionFragment
from stream_dictate.llm_cleanup import LLMCleanupError
from stream_dictate.session import ReconciliationSession
from stream_dictate.sink import SinkOperation, TextSink, apply_operations

logger = logging.getLogger("stream_dictate")

Cleaner = Callable[[str], str]

_STOP = object()


class DictationPipeline:
    """
    Feed fragments to one session in arrival order and apply results to a sink.

    Fragments submitted with :meth:`submit` are handled by a single worker
    thread. Final text may be passed through ``cleaner`` on a separate
    thread; the wait is bounded by ``cleaner_timeout`` and any failure falls
    back to the locally formatted text. Cleanups that finish after a reset
    are discarded.
    """

    def __init__(
        self,
        session: ReconciliationSession,
        sink: TextSink,
        cleaner: Cleaner | None = None,
        cleaner_timeout: float = DEFAULT_LLM_TIMEOUT,
        block_mode: bool = False,
    ):
        self.session = session
        self.sink = sink
        self.cleaner = cleaner
        self.cleaner_timeout = cleaner_timeout
        self.block_mode = block_mode

        self._lock = threading.RLock()
        self._queue: queue.Queue = queue.Queue()
        self._worker: threading.Thread | None = None
        self._executor: ThreadPoolExecutor | None = None
        self._block_parts: list[str] = []

    # ------------------------------------------------------------------
    # Worker lifecycle
    # ------------------------------------------------------------------
    def start(self) -> None:
        """Start the worker thread (idempotent)."""
        if self._worker is not None and self._worker.is_alive():
            return
        self._worker = threading.Thread(
            target=self._run, name="stream-dictate-worker", daemon=True
        )
        self._worker.start()

    def submit(self, fragment: TranscriptionFragment) -> None:
        """Queue a fragment for the worker, starting it if needed."""
        self.start()
        self._queue.put(fragment)

    def submit_all(self, fragments: Iterable[TranscriptionFragment]) -> None:
        for fragment in fragments:
            self.submit(fragment)

    def join(self) -> None:
        """Block until every submitted fragment has been processed."""
        self._queue.join()

    def stop(self) -> list[SinkOperation]:
        """Flush block mode, stop the worker, and reset the session."""
        if self._worker is not None and self._worker.is_alive():
            self._queue.join()
            self._queue.put(_STOP)
            self._worker.join()
        self._worker = None

        operations = self.flush() if self.block_mode else []
        self.reset()
        if self._executor is not None:
            self._executor.shutdown(wait=False, cancel_futures=True)
            self._executor = None
        return operations

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _STOP:
                    return
                self.process(item)
            except Exception:
                # Keep the worker alive; one bad fragment must not stop dictation
                logger.exception("Failed to process fragment")
            finally:
                self._queue.task_done()

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------
    def process(self, fragment: TranscriptionFragment) -> list[SinkOperation]:
        """Process one fragment synchronously and apply its operations."""
        if self.block_mode:
            if fragment.is_final and not fragment.is_blank():
                with self._lock:
                    self._block_parts.append(fragment.text.strip())
                logger.debug("Block mode: accumulated %d final fragments", len(self._block_parts))
            return []

        if fragment.is_final and self.cleaner is not None and not fragment.is_blank():
            with self._lock:
                self.session.track_sequence(fragment)
            return self._finalize(fragment.text)

        with self._lock:
            operations = self.session.handle_fragment(fragment, self.sink.current_value())
            apply_operations(self.sink, operations)
        return operations

    def flush(self) -> list[SinkOperation]:
        """Emit text accumulated in block mode as one final commit."""
        with self._lock:
            text = " ".join(self._block_parts)
            self._block_parts = []
        if not text.strip():
            return []
        logger.info("Block mode: flushing accumulated text")
        return self._finalize(text)

    def _finalize(self, text: str) -> list[SinkOperation]:
        with self._lock:
            epoch = self.session.epoch
            formatted = self.session.prepare_final(text)
        if not formatted:
            return []

        cleaned = self._clean(formatted) if self.cleaner is not None else formatted

        with self._lock:
            operations = self.session.commit_final(cleaned, epoch, self.sink.current_value())
            apply_operations(self.sink, operations)
        return operations

    def _clean(self, text: str) -> str:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="ai-cleanup")
        future = self._executor.submit(self.cleaner, text)  # type: ignore[arg-type]
        try:
            cleaned = future.result(timeout=self.cleaner_timeout)
        except FutureTimeoutError:
            future.cancel()
            logger.warning(
                "AI cleanup timed out after %.1fs, using local text", self.cleaner_timeout
            )
            return text
        except LLMCleanupError as e:
            logger.warning(f"AI cleanup failed, using local text: {e}")
            return text
        except Exception as e:
            logger.warning(f"AI cleaner raised {type(e).__name__}, using local text: {e}")
            return text

        if not isinstance(cleaned, str) or not cleaned.strip():
            logger.warning("AI cleanup returned no text, using local text")
            return text
        return cleaned.strip()

    # ------------------------------------------------------------------
    # Resets
    # ------------------------------------------------------------------
    def reset(self) -> int:
        """Reset the session from any thread; in-flight cleanups become stale."""
        with self._lock:
            self._block_parts = []
            return self.session.reset()

    def handle_silence(self) -> int:
        """Silence ends the dictation context, like an explicit reset."""
        logger.debug("Silence detected, resetting session")
        return self.reset()
