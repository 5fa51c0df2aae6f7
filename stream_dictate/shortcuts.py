"""Shortcut expansion table: persistence and application."""

from __future__ import annotations

import csv
import json
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from io import StringIO
from pathlib import Path

logger = logging.getLogger("stream_dictate")

# Store shortcut rules in a JSON file alongside other app data
SHORTCUTS_FILE = Path.home() / ".stream_dictate/stream_dictate_shortcuts.json"

DEFAULT_SHORTCUTS = [
    ("PM|product mgr", "product manager"),
    ("CEO|chief exec", "chief executive officer"),
    ("btw", "by the way"),
]


@dataclass
class ShortcutRule:
    """Literal trigger texts that expand to a single replacement."""

    triggers: list[str]
    replacement: str
    enabled: bool = True
    description: str | None = None

    def __post_init__(self) -> None:
        self.triggers = [t for t in (t.strip() for t in self.triggers) if t]

    def to_dict(self) -> dict:
        """Serialize the rule to a JSON-friendly dict."""

        return {
            "triggers": list(self.triggers),
            "replacement": self.replacement,
            "enabled": self.enabled,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict) -> ShortcutRule:
        """Create a rule from a persisted dictionary.

        Older files stored a single ``shortcut`` string instead of ``triggers``.
        """

        triggers = data.get("triggers")
        if not isinstance(triggers, list):
            legacy = data.get("shortcut")
            triggers = [legacy] if isinstance(legacy, str) else []
        return cls(
            triggers=[str(t) for t in triggers],
            replacement=str(data.get("replacement", "")),
            enabled=bool(data.get("enabled", True)),
            description=data.get("description"),
        )

    def expand(self, text: str) -> str:
        """Replace every trigger occurrence, ignoring case, without regex semantics."""

        return _replace_ignoring_case(text, self.triggers, self.replacement)


class ShortcutTable:
    """Ordered shortcut rules applied to text before it reaches the sink."""

    def __init__(self, rules: Iterable[ShortcutRule] | None = None, enabled: bool = True):
        self.rules: list[ShortcutRule] = [
            rule for rule in (rules or []) if rule.triggers and rule.replacement.strip()
        ]
        self.enabled = enabled

    @classmethod
    def from_mapping(cls, mapping: dict[str, str]) -> ShortcutTable:
        """Build a table from a plain ``{shortcut: expansion}`` mapping, keeping order."""

        return cls(ShortcutRule(triggers=[k], replacement=v) for k, v in mapping.items())

    @classmethod
    def with_defaults(cls) -> ShortcutTable:
        return cls(
            ShortcutRule(triggers=triggers.split("|"), replacement=replacement)
            for triggers, replacement in DEFAULT_SHORTCUTS
        )

    # ------------------------------------------------------------------
    # Loading / saving
    # ------------------------------------------------------------------
    @classmethod
    def load(cls, path: Path | None = None) -> ShortcutTable:
        """Load shortcut rules from disk, returning an empty table on failure."""

        path = path or SHORTCUTS_FILE

        if not path.is_file():
            return cls()

        try:
            content = path.read_text(encoding="utf-8").strip()
        except (OSError, UnicodeDecodeError) as e:
            # OSError: File access errors
            # UnicodeDecodeError: Invalid UTF-8 encoding
            logger.warning("Could not read saved shortcuts: %s", e)
            return cls()

        if not content:
            return cls()

        try:
            data = json.loads(content)
        except json.JSONDecodeError as e:
            logger.warning("Could not parse saved shortcuts: %s", e)
            return cls()

        if isinstance(data, dict):
            enabled = bool(data.get("enabled", True))
            items = data.get("rules", [])
        else:
            enabled = True
            items = data
        if not isinstance(items, list):
            return cls(enabled=enabled)
        return cls(
            (ShortcutRule.from_dict(item) for item in items if isinstance(item, dict)),
            enabled=enabled,
        )

    def save(self, path: Path | None = None) -> bool:
        """Persist shortcut rules to disk as JSON."""

        path = path or SHORTCUTS_FILE

        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            payload = json.dumps(
                {"enabled": self.enabled, "rules": [rule.to_dict() for rule in self.rules]},
                indent=2,
                ensure_ascii=False,
            )
            path.write_text(payload, encoding="utf-8")
            return True
        except (OSError, UnicodeEncodeError, TypeError, ValueError) as e:
            # OSError: File/directory write errors
            # TypeError/ValueError: Non-serializable values in rules
            logger.error("Could not save shortcuts: %s", e)
            return False

    # ------------------------------------------------------------------
    # Rule manipulation
    # ------------------------------------------------------------------
    def add_rule(self, rule: ShortcutRule) -> None:
        """Append a rule, replacing any rule that shares a trigger (case-insensitive)."""

        lowered = {t.lower() for t in rule.triggers}
        for idx, existing in enumerate(self.rules):
            if lowered & {t.lower() for t in existing.triggers}:
                self.rules[idx] = rule
                return
        self.rules.append(rule)

    def remove_trigger(self, trigger: str) -> None:
        """Remove a trigger text; rules left without triggers are dropped."""

        lowered = trigger.lower()
        for rule in self.rules:
            rule.triggers = [t for t in rule.triggers if t.lower() != lowered]
        self.rules = [rule for rule in self.rules if rule.triggers]

    def import_csv(self, csv_text: str) -> None:
        """Import rules from CSV text (triggers separated by ``|``, replacement, enabled)."""

        reader = csv.DictReader(csv_text.splitlines())
        for row in reader:
            triggers = [t for t in (row.get("triggers") or "").split("|") if t.strip()]
            replacement = (row.get("replacement") or "").strip()
            if not triggers or not replacement:
                continue
            self.add_rule(
                ShortcutRule(
                    triggers=triggers,
                    replacement=replacement,
                    enabled=str(row.get("enabled", "true")).lower() != "false",
                )
            )

    def export_csv(self) -> str:
        """Export rules as CSV text."""

        if not self.rules:
            return ""

        buffer = StringIO()
        writer = csv.DictWriter(buffer, fieldnames=["triggers", "replacement", "enabled"])
        writer.writeheader()
        for rule in self.rules:
            writer.writerow(
                {
                    "triggers": "|".join(rule.triggers),
                    "replacement": rule.replacement,
                    "enabled": str(rule.enabled).lower(),
                }
            )
        return buffer.getvalue().strip()

    # ------------------------------------------------------------------
    # Application
    # ------------------------------------------------------------------
    def apply(self, text: str) -> str:
        """Expand shortcuts in ``text`` in rule order."""

        if not text or not self.enabled or not self.rules:
            return text

        result = text
        for rule in self.rules:
            if rule.enabled:
                result = rule.expand(result)
        return result


def apply_shortcuts(text: str, table: ShortcutTable | None) -> str:
    """Apply shortcut expansion when a table is present."""

    if table is None:
        return text
    return table.apply(text)


def _replace_ignoring_case(text: str, needles: list[str], replacement: str) -> str:
    """Literal, case-insensitive, non-overlapping replacement of any needle in one pass."""

    needles = [n for n in needles if n]
    if not needles:
        return text
    haystack = text.casefold()
    targets = [n.casefold() for n in needles]
    # casefold can change lengths (e.g. German sharp s); fall back to lower()
    if len(haystack) != len(text) or any(len(t) != len(n) for t, n in zip(targets, needles)):
        haystack = text.lower()
        targets = [n.lower() for n in needles]
        if len(haystack) != len(text) or any(len(t) != len(n) for t, n in zip(targets, needles)):
            return text

    parts: list[str] = []
    start = 0
    while True:
        # Earliest match wins; the longer trigger wins a tie
        best = None
        for target in targets:
            found = haystack.find(target, start)
            if found >= 0 and (best is None or (found, -len(target)) < (best[0], -best[1])):
                best = (found, len(target))
        if best is None:
            break
        found, size = best
        parts.append(text[start:found])
        parts.append(replacement)
        start = found + size
    parts.append(text[start:])
    return "".join(parts)
