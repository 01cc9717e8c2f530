"""
Data models for the Happy Thoughts backend.
Thought and User records, pagination results, and the request bodies accepted by the API.
"""

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

import pytz
from pydantic import BaseModel, Field


def utc_now() -> datetime:
    return datetime.now(pytz.UTC)


def parse_timestamp(value: Union[datetime, str, None]) -> datetime:
    """Parse an ISO timestamp (including a trailing Z) into an aware UTC datetime"""
    if value is None or value == "":
        return utc_now()
    if isinstance(value, str):
        value = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
    elif not isinstance(value, datetime):
        raise ValueError(f"Unsupported timestamp value: {value!r}")
    if value.tzinfo is None:
        return pytz.UTC.localize(value)
    return value.astimezone(pytz.UTC)


def format_timestamp(value: datetime) -> str:
    # Fixed width so stored strings sort chronologically
    return parse_timestamp(value).isoformat(timespec="microseconds")


def new_id() -> str:
    return uuid.uuid4().hex


def owner_id_of(value: Any) -> Optional[str]:
    """Canonical identifier for a user reference.

    Accepts a raw id, a mapping with "id" or "_id" (a populated user record),
    or any object exposing an ``id`` attribute. Returns None for anonymous.
    """
    if value is None:
        return None
    if isinstance(value, dict):
        inner = value.get("id", value.get("_id"))
        return owner_id_of(inner)
    if hasattr(value, "id") and not isinstance(value, (str, bytes, int)):
        return owner_id_of(value.id)
    text = str(value).strip()
    return text or None


@dataclass
class Thought:
    id: str
    message: str
    tags: List[str] = field(default_factory=list)
    hearts: int = 0
    likes: List[str] = field(default_factory=list)
    owner: Optional[str] = None
    created_at: datetime = field(default_factory=utc_now)
    revision: int = 0

    @property
    def is_anonymous(self) -> bool:
        return self.owner is None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "message": self.message,
            "tags": list(self.tags),
            "hearts": self.hearts,
            "likes": list(self.likes),
            "owner": self.owner,
            "isAnonymous": self.is_anonymous,
            "createdAt": format_timestamp(self.created_at),
            "revision": self.revision,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Thought":
        """Build a Thought from a stored record, including legacy `_id`/`user`/`__v` keys"""
        owner = data.get("owner", data.get("user"))
        raw_tags = data.get("tags")
        # Non-list tags load as untagged
        tags = raw_tags if isinstance(raw_tags, (list, tuple)) else []
        return cls(
            id=str(data.get("id") or data.get("_id")),
            message=data["message"],
            tags=[str(tag).lower() for tag in tags],
            hearts=max(0, int(data.get("hearts") or 0)),
            likes=[owner_id_of(like) for like in (data.get("likes") or []) if owner_id_of(like)],
            owner=owner_id_of(owner),
            created_at=parse_timestamp(data.get("createdAt")),
            revision=int(data.get("revision", data.get("__v")) or 0),
        )

    @staticmethod
    def is_valid_record(data: Any) -> bool:
        """Minimum shape a stored record needs before it is loaded"""
        return (
            isinstance(data, dict)
            and bool(data.get("id") or data.get("_id"))
            and isinstance(data.get("message"), str)
            and bool(data.get("message"))
            and isinstance(data.get("hearts"), (int, float))
            and not isinstance(data.get("hearts"), bool)
        )


@dataclass
class User:
    id: str
    username: str
    password_hash: str
    created_at: datetime = field(default_factory=utc_now)

    def public_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "username": self.username}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "passwordHash": self.password_hash,
            "createdAt": format_timestamp(self.created_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "User":
        return cls(
            id=str(data.get("id") or data.get("_id")),
            username=data["username"],
            password_hash=data.get("passwordHash") or data.get("password", ""),
            created_at=parse_timestamp(data.get("createdAt")),
        )


@dataclass
class Page:
    items: List[Thought]
    total_count: int
    current_page: int
    limit: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total_count / self.limit)

    @property
    def has_next(self) -> bool:
        return self.current_page * self.limit < self.total_count

    @property
    def has_previous(self) -> bool:
        return self.current_page > 1

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "thoughts": [thought.to_dict() for thought in self.items],
            "totalCount": self.total_count,
            "currentPage": self.current_page,
            "totalPages": self.total_pages,
            "hasNext": self.has_next,
            "hasPrevious": self.has_previous,
        }
        if self.has_next:
            result["next"] = {"page": self.current_page + 1, "limit": self.limit}
        if self.has_previous:
            result["previous"] = {"page": self.current_page - 1, "limit": self.limit}
        return result


# Pydantic request models
class ThoughtCreateRequest(BaseModel):
    message: str


class ThoughtUpdateRequest(BaseModel):
    message: str
    tags: Optional[List[str]] = None
    preserve_tags: Optional[bool] = Field(default=False, alias="preserveTags")

    model_config = {"populate_by_name": True}


class CredentialsRequest(BaseModel):
    username: str
    password: str
