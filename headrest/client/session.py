from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any

from headrest.services.handoff_store import KeyValueBackend

ACCESS_TOKEN_KEY = "access_token"
REFRESH_TOKEN_KEY = "refresh_token"
USER_KEY = "auth_user"


@dataclass
class AuthSession:
    access_token: str
    refresh_token: str | None = None
    user: dict[str, Any] = field(default_factory=dict)


class SessionStore:
    """Holds the signed-in session in the same storage the signup pages use."""

    def __init__(self, backend: KeyValueBackend):
        self.backend = backend

    def establish(self, session: AuthSession) -> None:
        self.backend.set_item(ACCESS_TOKEN_KEY, session.access_token)
        if session.refresh_token:
            self.backend.set_item(REFRESH_TOKEN_KEY, session.refresh_token)
        self.backend.set_item(USER_KEY, json.dumps(session.user))

    def current(self) -> AuthSession | None:
        token = self.backend.get_item(ACCESS_TOKEN_KEY)
        if not token:
            return None
        raw_user = self.backend.get_item(USER_KEY)
        return AuthSession(
            access_token=token,
            refresh_token=self.backend.get_item(REFRESH_TOKEN_KEY),
            user=json.loads(raw_user) if raw_user else {},
        )

    def clear(self) -> None:
        for key in (ACCESS_TOKEN_KEY, REFRESH_TOKEN_KEY, USER_KEY):
            self.backend.remove_item(key)
