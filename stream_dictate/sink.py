"""Text sink operations and sink implementations."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Protocol, Union

import pyperclip

logger = logging.getLogger("stream_dictate")


@dataclass(frozen=True)
class Insert:
    """Append ``text`` at the logical cursor."""

    text: str


@dataclass(frozen=True)
class Replace:
    """Substitute the most recent occurrence of ``old`` with ``new``."""

    old: str
    new: str


@dataclass(frozen=True)
class ResetAndInsert:
    """Overwrite the entire visible content with ``text``."""

    text: str


SinkOperation = Union[Insert, Replace, ResetAndInsert]


class TextSink(Protocol):
    """Capability interface implemented by platform adapters."""

    def insert(self, text: str) -> None: ...

    def replace(self, old: str, new: str) -> None: ...

    def reset_and_insert(self, text: str) -> None: ...

    def current_value(self) -> str: ...


def apply_operation(sink: TextSink, operation: SinkOperation) -> None:
    if isinstance(operation, Insert):
        sink.insert(operation.text)
    elif isinstance(operation, Replace):
        sink.replace(operation.old, operation.new)
    elif isinstance(operation, ResetAndInsert):
        sink.reset_and_insert(operation.text)
    else:
        raise TypeError(f"Unknown sink operation: {operation!r}")


def apply_operations(sink: TextSink, operations: Iterable[SinkOperation]) -> None:
    """Apply operations to ``sink`` in order."""
    for operation in operations:
        apply_operation(sink, operation)


def describe_operation(operation: SinkOperation) -> str:
    """One-line human readable form used by the CLI."""
    if isinstance(operation, Insert):
        return f"INSERT  {operation.text!r}"
    if isinstance(operation, Replace):
        return f"REPLACE {operation.old!r} -> {operation.new!r}"
    return f"RESET   {operation.text!r}"


class BufferTextSink:
    """In-memory sink holding the visible text as a string."""

    def __init__(self, initial: str = ""):
        self._value = initial

    def insert(self, text: str) -> None:
        self._value += text

    def replace(self, old: str, new: str) -> None:
        if not old:
            self.insert(new)
            return
        index = self._value.rfind(old)
        if index < 0:
            logger.warning("Replace target %r not found, inserting instead", old)
            self.insert(new)
            return
        self._value = self._value[:index] + new + self._value[index + len(old) :]

    def reset_and_insert(self, text: str) -> None:
        self._value = text

    def current_value(self) -> str:
        return self._value


class ClipboardTextSink(BufferTextSink):
    """Buffer sink that mirrors its content to the system clipboard."""

    def __init__(self, initial: str = ""):
        super().__init__(initial)
        self.copy_failed = False

    def insert(self, text: str) -> None:
        super().insert(text)
        self._publish()

    def replace(self, old: str, new: str) -> None:
        # BufferTextSink.replace may fall back to self.insert, which publishes too
        super().replace(old, new)
        self._publish()

    def reset_and_insert(self, text: str) -> None:
        super().reset_and_insert(text)
        self._publish()

    def _publish(self) -> None:
        try:
            pyperclip.copy(self.current_value())
        except pyperclip.PyperclipException as exc:
            if not self.copy_failed:
                logger.warning("Clipboard copy failed: %s", exc)
            self.copy_failed = True
