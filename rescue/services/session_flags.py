"""Debug session flags carried in cookies, verified against the rescue secret.

There is no server-side session: a flag is "set" when its cookie holds the
token derived from the current secret. Rotating the secret therefore clears
every outstanding flag.
"""

from __future__ import annotations

import hashlib
import hmac
import re

FLAG_LOG = "log"
KNOWN_FLAGS = frozenset({FLAG_LOG})

_FLAG_NAME_RE = re.compile(r"[^a-z0-9_\-]")


def sanitize_flag_name(value: str | None) -> str:
    """Lowercase and keep only ``[a-z0-9_-]``."""
    return _FLAG_NAME_RE.sub("", (value or "").lower())


def flag_token(secret: str, flag_name: str = "", *, per_name: bool = False) -> str:
    """Cookie value that marks a flag as set.

    By default the token is a digest of the secret alone, so the same value
    is valid under every flag's cookie name. With ``per_name`` the flag name
    is mixed in as the HMAC message.
    """
    if per_name:
        return hmac.new(secret.encode(), flag_name.encode(), hashlib.sha256).hexdigest()
    return hashlib.sha256(secret.encode()).hexdigest()


class SessionFlagCodec:
    def __init__(
        self,
        *,
        cookie_prefix: str = "rescue_debug_",
        ttl_seconds: int = 3600,
        per_name: bool = False,
    ) -> None:
        self.cookie_prefix = cookie_prefix
        self.ttl_seconds = ttl_seconds
        self.per_name = per_name

    def cookie_name(self, flag_name: str) -> str:
        return self.cookie_prefix + flag_name

    def token_for(self, secret: str, flag_name: str) -> str:
        return flag_token(secret, flag_name, per_name=self.per_name)

    def is_set(self, secret: str | None, flag_name: str, presented: str | None) -> bool:
        if not secret or not presented:
            return False
        expected = self.token_for(secret, flag_name)
        return hmac.compare_digest(presented.encode(), expected.encode())

    def toggled_value(self, secret: str, flag_name: str, presented: str | None) -> str:
        """New cookie value after flipping: the token if it was clear, else empty."""
        if self.is_set(secret, flag_name, presented):
            return ""
        return self.token_for(secret, flag_name)

    def flags_from_cookies(self, secret: str | None, cookies: dict[str, str]) -> dict[str, bool]:
        return {
            name: self.is_set(secret, name, cookies.get(self.cookie_name(name)))
            for name in sorted(KNOWN_FLAGS)
        }
