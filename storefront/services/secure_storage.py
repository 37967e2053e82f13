"""Namespaced, encrypted key/value storage.

Wraps any string mapping (a browser-like local storage, a session dict)
so that values are encrypted with TokenCodec and keys live under a fixed
prefix. ``clear()`` never touches keys outside the prefix.
"""

import logging
from collections.abc import MutableMapping
from typing import Any

from storefront.services.crypto import DecryptionError, TokenCodec

logger = logging.getLogger(__name__)

DEFAULT_PREFIX = "secure_"


class SecureStorage:
    """Encrypted view over a shared string mapping."""

    def __init__(
        self,
        codec: TokenCodec,
        backend: MutableMapping[str, str] | None = None,
        prefix: str = DEFAULT_PREFIX,
    ) -> None:
        self._codec = codec
        self._backend: MutableMapping[str, str] = {} if backend is None else backend
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def set_item(self, key: str, value: Any) -> None:
        self._backend[self._key(key)] = self._codec.encrypt(value)

    def get_item(self, key: str) -> Any:
        """Return the stored value, or None if missing or unreadable."""
        blob = self._backend.get(self._key(key))
        if blob is None:
            return None
        try:
            return self._codec.decrypt(blob)
        except DecryptionError:
            logger.warning(f"Discarding unreadable secure storage entry: {key}")
            return None

    def remove_item(self, key: str) -> None:
        self._backend.pop(self._key(key), None)

    def keys(self) -> list[str]:
        """Unprefixed keys currently held in the namespace."""
        return [k[len(self._prefix) :] for k in self._backend if k.startswith(self._prefix)]

    def clear(self) -> None:
        for full_key in [k for k in self._backend if k.startswith(self._prefix)]:
            del self._backend[full_key]
