from dataclasses import dataclass
from typing import Any, Iterable, Optional

from bson import ObjectId

from videotube.errors import PermissionDenied


@dataclass(frozen=True)
class Viewer:
    """Identity of the caller for one request.

    Either authenticated as a user id or anonymous. Build a fresh one per
    request; it holds no mutable state and must not be cached.
    """
    user_id: Optional[ObjectId] = None
    username: Optional[str] = None

    @classmethod
    def anonymous(cls) -> "Viewer":
        return cls()

    @classmethod
    def authenticated(cls, user_id: ObjectId, username: Optional[str] = None) -> "Viewer":
        return cls(user_id=user_id, username=username)

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None

    def is_user(self, user_id: Any) -> bool:
        return self.user_id is not None and self.user_id == user_id

    def is_among(self, user_ids: Iterable[Any]) -> bool:
        """True iff the caller appears in user_ids. Always False for anonymous."""
        if self.user_id is None:
            return False
        return any(self.user_id == u for u in user_ids)

    def require_user(self) -> ObjectId:
        if self.user_id is None:
            raise PermissionDenied("Authentication required")
        return self.user_id
