from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field, replace
from enum import Enum
from uuid import uuid4


class TransitionKind(str, Enum):
    """How a navigation happened."""

    TYPED = "typed"
    LINK = "link"
    RELOAD = "reload"
    FORM_SUBMIT = "form_submit"
    OTHER = "other"

    @classmethod
    def parse(cls, value: TransitionKind | str | None) -> TransitionKind:
        if isinstance(value, TransitionKind):
            return value
        if not value:
            return cls.OTHER
        normalized = str(value).strip().lower().replace("-", "_")
        if normalized == "formsubmit":
            normalized = "form_submit"
        try:
            return cls(normalized)
        except ValueError:
            return cls.OTHER


def new_entry_id() -> str:
    return uuid4().hex


@dataclass
class HistoryEntry:
    address: str
    title: str = ""
    last_visit: dt.datetime = field(default_factory=lambda: dt.datetime.now(dt.UTC))
    visit_count: int = 1
    typed_count: int = 0
    favicon: bytes | None = None
    id: str = field(default_factory=new_entry_id)

    def __post_init__(self) -> None:
        if not self.title:
            self.title = self.address
        if self.last_visit.tzinfo is None:
            self.last_visit = self.last_visit.replace(tzinfo=dt.UTC)

    def copy(self) -> HistoryEntry:
        return replace(self)
