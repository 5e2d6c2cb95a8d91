"""
Typed access to the per-browser session used by the OAuth flow.

The session holds three short-lived entries: the CSRF state sent to the
identity provider, the PKCE challenge registered at initiation, and the
authorization code handed to the app after the callback. Each entry keeps
its creation and expiry time so callers can tell "never stored" apart
from "stored but stale".
"""

import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, MutableMapping

from core.config import settings


@dataclass
class SessionEntry:
    value: Any
    created_at: float
    expires_at: float

    @property
    def expired(self) -> bool:
        return time.time() > self.expires_at


class SessionContext:
    OAUTH_STATE = "oauth_state"
    PKCE_CHALLENGE = "pkce_challenge"
    TEMP_AUTH_CODE = "temp_auth_code"

    def __init__(
        self,
        store: MutableMapping[str, Any],
        state_max_age: timedelta,
        pkce_max_age: timedelta,
        auth_code_max_age: timedelta,
    ):
        self._store = store
        self._state_max_age = state_max_age
        self._pkce_max_age = pkce_max_age
        self._auth_code_max_age = auth_code_max_age

    @classmethod
    def from_settings(cls, store: MutableMapping[str, Any]) -> "SessionContext":
        return cls(
            store,
            state_max_age=timedelta(minutes=settings.OAUTH_STATE_MAX_AGE_MINUTES),
            pkce_max_age=timedelta(minutes=settings.PKCE_CHALLENGE_MAX_AGE_MINUTES),
            auth_code_max_age=timedelta(minutes=settings.AUTH_CODE_EXPIRE_MINUTES),
        )

    def _set(self, key: str, value: Any, max_age: timedelta) -> SessionEntry:
        now = time.time()
        entry = SessionEntry(value=value, created_at=now, expires_at=now + max_age.total_seconds())
        # Stored as plain JSON, the session cookie cannot hold dataclasses
        self._store[key] = {
            "value": entry.value,
            "created_at": entry.created_at,
            "expires_at": entry.expires_at,
        }
        return entry

    def _get(self, key: str) -> SessionEntry | None:
        raw = self._store.get(key)
        if raw is None:
            return None
        try:
            return SessionEntry(
                value=raw["value"],
                created_at=float(raw["created_at"]),
                expires_at=float(raw["expires_at"]),
            )
        except (KeyError, TypeError, ValueError):
            self._clear(key)
            return None

    def _clear(self, key: str) -> None:
        self._store.pop(key, None)

    # CSRF state
    def get_oauth_state(self) -> SessionEntry | None:
        return self._get(self.OAUTH_STATE)

    def set_oauth_state(self, state: str) -> SessionEntry:
        return self._set(self.OAUTH_STATE, state, self._state_max_age)

    def clear_oauth_state(self) -> None:
        self._clear(self.OAUTH_STATE)

    # PKCE challenge, value is {"code_challenge": ..., "method": ...}
    def get_pkce_challenge(self) -> SessionEntry | None:
        return self._get(self.PKCE_CHALLENGE)

    def set_pkce_challenge(self, code_challenge: str, method: str) -> SessionEntry:
        value = {"code_challenge": code_challenge, "method": method}
        return self._set(self.PKCE_CHALLENGE, value, self._pkce_max_age)

    def clear_pkce_challenge(self) -> None:
        self._clear(self.PKCE_CHALLENGE)

    # Authorization code issued at the end of the callback
    def get_temp_auth_code(self) -> SessionEntry | None:
        return self._get(self.TEMP_AUTH_CODE)

    def set_temp_auth_code(self, code: str) -> SessionEntry:
        return self._set(self.TEMP_AUTH_CODE, code, self._auth_code_max_age)

    def clear_temp_auth_code(self) -> None:
        self._clear(self.TEMP_AUTH_CODE)
