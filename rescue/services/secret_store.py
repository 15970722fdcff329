"""Secret store — the single shared rescue key, encrypted in the settings table."""

from __future__ import annotations

import logging
import re
import secrets
import string
from urllib.parse import urlencode

from cryptography.fernet import InvalidToken
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rescue.models.setting import Setting
from rescue.utils.crypto import decrypt, encrypt

logger = logging.getLogger(__name__)

SECRET_SETTING_KEY = "rescue_secret_key"
# URL-unreserved so a generated key survives a query string untouched
SECRET_ALPHABET = string.ascii_letters + string.digits + "-_.~"
_WHITESPACE_RE = re.compile(r"\s+")


class InvalidSecretError(ValueError):
    pass


def normalize_secret(value: str) -> str:
    """Trim and drop embedded whitespace; raise if nothing is left."""
    cleaned = _WHITESPACE_RE.sub("", value or "")
    if not cleaned:
        raise InvalidSecretError("Secret key must not be empty.")
    return cleaned


def generate_secret(length: int = 32) -> str:
    return "".join(secrets.choice(SECRET_ALPHABET) for _ in range(max(32, length)))


def build_rescue_url(home_url: str, param_name: str, secret: str) -> str:
    separator = "&" if "?" in home_url else "?"
    return f"{home_url}{separator}{urlencode({param_name: secret})}"


class SecretStore:
    """Holds the rescue secret in the host's key-value store.

    ``get`` never raises: when the store can't be reached (or the value can't
    be decrypted) it returns ``None`` and rescue mode is simply unavailable.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        encryption_key: str | None = None,
        secret_length: int = 32,
    ) -> None:
        self._session_factory = session_factory
        self._encryption_key = encryption_key
        self._secret_length = secret_length

    async def get(self) -> str | None:
        try:
            async with self._session_factory() as db:
                row = await db.get(Setting, SECRET_SETTING_KEY)
                if row is not None:
                    return decrypt(row.encrypted_value, self._encryption_key)

                secret = generate_secret(self._secret_length)
                db.add(
                    Setting(
                        key=SECRET_SETTING_KEY,
                        encrypted_value=encrypt(secret, self._encryption_key),
                    )
                )
                await db.commit()
                logger.info("Generated a new rescue secret")
                return secret
        except InvalidToken:
            logger.warning("Stored rescue secret cannot be decrypted; rescue mode disabled")
        except (SQLAlchemyError, OSError) as exc:
            logger.warning("Secret store unavailable, rescue mode disabled: %s", exc)
        return None

    async def set(self, new_secret: str) -> str:
        """Persist a new secret. Authorization is the caller's responsibility."""
        secret = normalize_secret(new_secret)
        async with self._session_factory() as db:
            row = await db.get(Setting, SECRET_SETTING_KEY)
            encrypted = encrypt(secret, self._encryption_key)
            if row is None:
                db.add(Setting(key=SECRET_SETTING_KEY, encrypted_value=encrypted))
            else:
                row.encrypted_value = encrypted
            await db.commit()
        logger.info("Rescue secret updated; previous rescue URLs are now invalid")
        return secret

    async def rotate(self) -> str:
        return await self.set(generate_secret(self._secret_length))
