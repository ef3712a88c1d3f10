from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class Session:
    client_code: str
    auth_token: str
    feed_token: Optional[str] = None
    refresh_token: Optional[str] = None
    profile: Dict[str, Any] = field(default_factory=dict)
    created_at: Optional[datetime] = None

    @property
    def display_name(self) -> str:
        return str(self.profile.get("name") or self.client_code)


class SessionStore:
    """Holds the one broker session of this process.

    Login replaces the whole record in a single assignment; readers take a
    reference and keep using it even if a later login swaps it out.
    """

    def __init__(self) -> None:
        self._session: Optional[Session] = None

    @property
    def current(self) -> Optional[Session]:
        return self._session

    def replace(self, session: Session) -> None:
        self._session = session

    def clear(self) -> Optional[Session]:
        previous, self._session = self._session, None
        return previous
