"""
Recent-activity feed.

Each activity kind is its own frozen dataclass carrying only the fields that
kind has. They share the ``Activity`` projection (``summary``/``as_dict``) so
callers never switch on a ``type`` string.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from itertools import chain
from typing import Any, ClassVar, Dict, Iterable, List, Optional


@dataclass(frozen=True)
class ActivityUser:
    id: Optional[Any] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None

    def display_name(self) -> str:
        full_name = " ".join(part.strip() for part in (self.first_name, self.last_name) if part and part.strip())
        return full_name or self.email or "Unknown user"


@dataclass(frozen=True)
class Activity:
    id: Any
    user: ActivityUser
    timestamp: Optional[datetime]

    kind: ClassVar[str] = "activity"
    subject_key: ClassVar[str] = "subject"

    def subject(self) -> str:
        raise NotImplementedError

    def summary(self) -> str:
        raise NotImplementedError

    def as_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.kind,
            "user": self.user.display_name(),
            "summary": self.summary(),
            "timestamp": self.timestamp.isoformat() if self.timestamp is not None else None,
            self.subject_key: self.subject(),
        }


@dataclass(frozen=True)
class AssetPurchaseActivity(Activity):
    asset_name: str = ""

    kind: ClassVar[str] = "asset_purchase"
    subject_key: ClassVar[str] = "asset"

    def subject(self) -> str:
        return self.asset_name

    def summary(self) -> str:
        return f"{self.user.display_name()} purchased {self.asset_name}"


@dataclass(frozen=True)
class ChatMessageActivity(Activity):
    chat_name: str = ""

    kind: ClassVar[str] = "chat_message"
    subject_key: ClassVar[str] = "chat"

    def subject(self) -> str:
        return self.chat_name

    def summary(self) -> str:
        return f"{self.user.display_name()} sent a message in {self.chat_name or 'a private chat'}"


@dataclass(frozen=True)
class DiaryEntryActivity(Activity):
    diary_title: str = ""

    kind: ClassVar[str] = "diary_entry"
    subject_key: ClassVar[str] = "diary"

    def subject(self) -> str:
        return self.diary_title

    def summary(self) -> str:
        return f"{self.user.display_name()} wrote a new page in {self.diary_title}"


@dataclass(frozen=True)
class ForumPostActivity(Activity):
    topic_title: str = ""

    kind: ClassVar[str] = "forum_post"
    subject_key: ClassVar[str] = "topic"

    def subject(self) -> str:
        return self.topic_title

    def summary(self) -> str:
        return f"{self.user.display_name()} posted in {self.topic_title}"


@dataclass(frozen=True)
class AwardEarnedActivity(Activity):
    award_name: str = ""

    kind: ClassVar[str] = "award_earned"
    subject_key: ClassVar[str] = "award"

    def subject(self) -> str:
        return self.award_name

    def summary(self) -> str:
        return f"{self.user.display_name()} earned {self.award_name}"


def _recency_key(activity: Activity) -> tuple:
    # Undated records sort after every dated one.
    timestamp = activity.timestamp
    return (timestamp is not None, timestamp or datetime.min, activity.id)


def assemble_recent(limit: int, *batches: Iterable[Activity]) -> List[Activity]:
    """
    Merge activity batches of any kinds into one feed, newest first.

    Ties on ``timestamp`` are broken by ``id`` (descending). Records without a
    timestamp go last.
    """

    if limit <= 0:
        return []
    merged = sorted(chain.from_iterable(batches), key=_recency_key, reverse=True)
    return merged[:limit]
