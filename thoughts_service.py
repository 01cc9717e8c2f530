"""
Thought Service
Business logic for thoughts: validation, auto-tagging, pagination, trending and ownership rules.

The service never knows which storage backend it talks to; a ThoughtStore is
handed to it at construction. Mutations run inside one lock so the
read-modify-write of likes, updates and deletes cannot interleave within a
process.
"""

import logging
import threading
from typing import Any, Iterable, List, Optional

from api_errors import AuthorizationError, NotFoundError, ValidationError
from tag_classifier import classify
from thought_models import Page, Thought, new_id, owner_id_of, utc_now
from thought_store import ThoughtStore

logger = logging.getLogger(__name__)

MAX_PAGE_LIMIT = 100


def normalize_tags(tags: Iterable[Any]) -> List[str]:
    """Trim, lower-case and de-duplicate caller supplied tags, keeping order"""
    cleaned: List[str] = []
    for tag in tags:
        if not isinstance(tag, str):
            raise ValidationError("Tags must be strings", {"tag": repr(tag)})
        label = tag.strip().lower()
        if label and label not in cleaned:
            cleaned.append(label)
    return cleaned


def _require_int(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{name} must be an integer", {name: value})
    return value


class ThoughtService:
    """Create, query, rank and mutate thoughts"""

    def __init__(self, store: ThoughtStore, min_length: int = 5, max_length: int = 140):
        self.store = store
        self.min_length = min_length
        self.max_length = max_length
        self._write_lock = threading.Lock()

    # ===== VALIDATION =====

    def validate_message(self, message: Any) -> str:
        """Return the trimmed message or raise ValidationError"""
        if not isinstance(message, str):
            raise ValidationError("Message must be a string", {"message": type(message).__name__})

        trimmed = message.strip()
        if not self.min_length <= len(trimmed) <= self.max_length:
            raise ValidationError(
                f"Message must be between {self.min_length} and {self.max_length} characters",
                {"length": len(trimmed), "min": self.min_length, "max": self.max_length}
            )
        return trimmed

    def _require_owner(self, thought: Thought, user_id: Any, action: str) -> None:
        owner = owner_id_of(thought.owner)
        if owner is None:
            raise AuthorizationError(f"Anonymous thoughts cannot be {action}d")
        if owner != owner_id_of(user_id):
            raise AuthorizationError(f"You can only {action} your own thoughts")

    # ===== QUERIES =====

    def paginate(self, page: Any = 1, limit: Any = 10) -> Page:
        page = _require_int("page", page)
        limit = _require_int("limit", limit)
        if page < 1:
            raise ValidationError("page must be at least 1", {"page": page})
        if not 1 <= limit <= MAX_PAGE_LIMIT:
            raise ValidationError(f"limit must be between 1 and {MAX_PAGE_LIMIT}", {"limit": limit})

        skip = (page - 1) * limit
        items = self.store.find_all(skip=skip, limit=limit, newest_first=True)
        total = self.store.count()
        return Page(items=items, total_count=total, current_page=page, limit=limit)

    def get(self, thought_id: str) -> Thought:
        thought = self.store.find_by_id(thought_id)
        if thought is None:
            raise NotFoundError("Thought")
        return thought

    def trending(self) -> List[Thought]:
        """Most hearts first; equal hearts keep their stored order"""
        return sorted(self.store.find_all(), key=lambda t: t.hearts, reverse=True)

    def by_tag(self, tag: str) -> List[Thought]:
        label = tag.strip().lower()
        return [t for t in self.store.find_all() if label in t.tags]

    def all_tags(self) -> List[str]:
        return sorted({tag for thought in self.store.find_all() for tag in thought.tags})

    def liked_by(self, user_id: Any) -> List[Thought]:
        user = owner_id_of(user_id)
        return [t for t in self.store.find_all(newest_first=True) if user in t.likes]

    # ===== MUTATIONS =====

    def create(self, message: Any, owner: Any = None) -> Thought:
        text = self.validate_message(message)
        thought = Thought(
            id=new_id(),
            message=text,
            tags=classify(text),
            hearts=0,
            likes=[],
            owner=owner_id_of(owner),
            created_at=utc_now(),
        )
        self.store.insert(thought)
        logger.info(f"✨ Created thought {thought.id} tagged {thought.tags}")
        return thought

    def like(self, thought_id: str, user_id: Any = None) -> Thought:
        """Authenticated callers toggle their like; anonymous callers add a heart"""
        user = owner_id_of(user_id)
        with self._write_lock:
            thought = self.get(thought_id)
            if user is None:
                thought.hearts += 1
            else:
                if user in thought.likes:
                    thought.likes.remove(user)
                else:
                    thought.likes.append(user)
                thought.hearts = len(thought.likes)
            self._persist(thought)
        return thought

    def update(self, thought_id: str, message: Any, tags: Optional[Iterable[Any]] = None,
               preserve_tags: bool = False, user_id: Any = None) -> Thought:
        with self._write_lock:
            thought = self.get(thought_id)
            self._require_owner(thought, user_id, "update")
            text = self.validate_message(message)

            if preserve_tags:
                new_tags = list(thought.tags)
            elif tags is not None:
                new_tags = normalize_tags(tags)
            else:
                new_tags = []
            # An empty explicit list falls back to the classifier
            if not new_tags:
                new_tags = classify(text)

            thought.message = text
            thought.tags = new_tags
            thought.revision += 1
            self._persist(thought)
        logger.info(f"✏️ Updated thought {thought_id} (revision {thought.revision})")
        return thought

    def delete(self, thought_id: str, user_id: Any = None) -> Thought:
        with self._write_lock:
            thought = self.get(thought_id)
            self._require_owner(thought, user_id, "delete")
            if not self.store.delete(thought_id):
                raise NotFoundError("Thought")
        logger.info(f"🗑️ Deleted thought {thought_id}")
        return thought

    def backfill_tags(self) -> int:
        """Classify every thought that has no tags; returns how many were updated"""
        updated = 0
        with self._write_lock:
            for thought in self.store.find_all():
                if thought.tags:
                    continue
                thought.tags = classify(thought.message)
                self._persist(thought)
                updated += 1
                logger.info(f"🏷️ Tagged \"{thought.message[:30]}...\" with: {thought.tags}")

        if updated:
            logger.info(f"✅ Auto-tagged {updated} thoughts")
        return updated

    def _persist(self, thought: Thought) -> None:
        if self.store.update(thought) is None:
            raise NotFoundError("Thought")
