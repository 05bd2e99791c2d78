from __future__ import annotations

import base64
import datetime as dt
import json
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Session:
    """Authenticated user as returned by PocketBase auth-with-password."""
    user_id: str
    token: str
    expires_at: Optional[dt.datetime] = None

    def is_valid(self, now: Optional[dt.datetime] = None) -> bool:
        if not self.user_id or not self.token:
            return False
        if self.expires_at is None:
            return True
        now = now or dt.datetime.now(dt.timezone.utc)
        return now < self.expires_at

    @property
    def auth_header(self) -> dict:
        return {"Authorization": f"Bearer {self.token}"}


def token_expiry(token: str) -> Optional[dt.datetime]:
    """Read the ``exp`` claim of a PocketBase JWT (no signature check)."""
    try:
        payload = token.split(".")[1]
        payload += "=" * (-len(payload) % 4)
        claims = json.loads(base64.urlsafe_b64decode(payload))
        return dt.datetime.fromtimestamp(int(claims["exp"]), tz=dt.timezone.utc)
    except (IndexError, KeyError, ValueError, TypeError):
        return None
