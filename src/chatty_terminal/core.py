"""Core data models for chatty-terminal."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

DEFAULT_BACKGROUND = "var(--secondary-bg)"
DEFAULT_FOREGROUND = "var(--primary-text)"
DEFAULT_FILTER = "none"


@dataclass(frozen=True)
class Message:
    """A single chat message as known to the store."""

    alias: str
    content: str
    at: str = ""  # room/path the sender was in when posting
    time: Optional[datetime] = None  # assigned by the store on append

    @classmethod
    def from_dict(cls, data: dict) -> "Message":
        """Build a Message from a JSON record returned by the backend."""
        raw_time = data.get("time")
        time = None
        if isinstance(raw_time, str) and raw_time:
            # fromisoformat() before 3.11 does not accept a trailing "Z"
            if raw_time.endswith("Z"):
                raw_time = raw_time[:-1] + "+00:00"
            time = datetime.fromisoformat(raw_time)
        elif isinstance(raw_time, datetime):
            time = raw_time
        return cls(
            alias=str(data.get("alias", "")),
            content=str(data.get("content", "")),
            at=str(data.get("at") or ""),
            time=time,
        )

    def to_dict(self) -> dict:
        return {
            "time": self.time.isoformat() if self.time else None,
            "alias": self.alias,
            "content": self.content,
            "at": self.at,
        }


@dataclass
class Session:
    """Client-local shell state of one Terminal."""

    user: str = "alias"
    system: str = "ubuntu"
    path: str = "~"
    ps1: str = "$"


@dataclass
class ThemeState:
    """Visual state of the output pane and the global page filter."""

    background: str = DEFAULT_BACKGROUND
    foreground: str = DEFAULT_FOREGROUND
    filter: str = DEFAULT_FILTER
    mode: Optional[str] = None  # "lightmode" | "darkmode" | None

    def reset(self) -> None:
        self.background = DEFAULT_BACKGROUND
        self.foreground = DEFAULT_FOREGROUND
        self.filter = DEFAULT_FILTER
        self.mode = None
