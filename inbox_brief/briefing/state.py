"""Persisted briefing state and its JSON file store."""

from __future__ import annotations

import json
import logging
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Any

from inbox_brief.config import state_file_path

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY = (
    "You have a quiet morning.\n\n"
    "There are no urgent blockers in your inbox.\n"
)
DEFAULT_LABEL = "Last updated: never"


class ActiveSlot(str, Enum):
    """Which briefing is on screen."""

    PREVIOUS = "Previous"
    CURRENT = "Current"


@dataclass
class BriefingState:
    """Everything the presentation layer needs, and everything that survives a restart.

    One level of history only: ``previous_*`` holds the briefing that was
    current before the latest refresh.
    """

    summary: str = DEFAULT_SUMMARY
    last_updated_label: str = DEFAULT_LABEL
    previous_briefing: str | None = None
    current_briefing: str | None = None
    previous_update_time: str | None = None
    update_time: str | None = None
    active: ActiveSlot = ActiveSlot.CURRENT
    # The previous_* pair that a refresh in flight pushed out; cleared on completion.
    displaced_briefing: str | None = None
    displaced_update_time: str | None = None

    @property
    def has_previous(self) -> bool:
        return self.previous_briefing is not None

    @property
    def has_current(self) -> bool:
        return self.current_briefing is not None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["active"] = self.active.value
        return data

    @classmethod
    def from_dict(cls, data: Any) -> BriefingState:
        """Build a state from decoded JSON.

        Raises:
            ValueError: if a field is missing or has the wrong type.
        """
        if not isinstance(data, dict):
            raise ValueError("state must be a JSON object")

        def _text(key: str) -> str:
            value = data.get(key)
            if not isinstance(value, str):
                raise ValueError(f"{key!r} must be a string")
            return value

        def _optional(key: str) -> str | None:
            value = data.get(key)
            if value is not None and not isinstance(value, str):
                raise ValueError(f"{key!r} must be a string or null")
            return value

        state = cls(
            summary=_text("summary"),
            last_updated_label=_text("last_updated_label"),
            previous_briefing=_optional("previous_briefing"),
            current_briefing=_optional("current_briefing"),
            previous_update_time=_optional("previous_update_time"),
            update_time=_optional("update_time"),
            displaced_briefing=_optional("displaced_briefing"),
            displaced_update_time=_optional("displaced_update_time"),
            active=ActiveSlot(data.get("active", ActiveSlot.CURRENT.value)),
        )
        if state.active is ActiveSlot.PREVIOUS and not state.has_previous:
            state.active = ActiveSlot.CURRENT
        return state


class StateStore:
    """Reads and whole-file overwrites the briefing state JSON document.

    Single writer (the controller), read once at start-up.
    """

    def __init__(self, path: str | Path | None = None) -> None:
        self._path = Path(path) if path is not None else state_file_path()

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> BriefingState:
        """Return the stored state, or a fresh default if absent or unreadable."""
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            logger.info("No saved state at %s — starting fresh", self._path)
            return BriefingState()
        except OSError as exc:
            logger.warning("Could not read state file %s: %s — using defaults", self._path, exc)
            return BriefingState()
        except UnicodeDecodeError as exc:
            logger.warning("Ignoring corrupt state file %s: %s", self._path, exc)
            return BriefingState()

        try:
            return BriefingState.from_dict(json.loads(raw))
        except ValueError as exc:
            logger.warning("Ignoring corrupt state file %s: %s", self._path, exc)
            return BriefingState()

    def save(self, state: BriefingState) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(state.to_dict(), indent=2), encoding="utf-8")
        logger.debug("State written to %s", self._path)
