"""
Credential store interface and simple implementations.
"""
import logging
from abc import ABC, abstractmethod
from typing import MutableMapping, Optional

from ..events import mask_token

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "refreshToken"
USER_KEY = "user"


class CredentialStore(ABC):
    """Credential store interface."""

    @abstractmethod
    def get_access_token(self) -> Optional[str]:
        """Current access token, if any."""
        ...

    @abstractmethod
    def get_refresh_token(self) -> Optional[str]:
        """Current refresh token, if any."""
        ...

    @abstractmethod
    def set_tokens(self, access_token: str, refresh_token: str) -> None:
        """Replace both tokens."""
        ...

    @abstractmethod
    def clear(self) -> None:
        """Forget all credentials."""
        ...


class MemoryCredentialStore(CredentialStore):
    """Credentials held in process memory."""

    def __init__(
        self,
        access_token: Optional[str] = None,
        refresh_token: Optional[str] = None,
    ) -> None:
        self._access_token = access_token
        self._refresh_token = refresh_token

    def get_access_token(self) -> Optional[str]:
        return self._access_token

    def get_refresh_token(self) -> Optional[str]:
        return self._refresh_token

    def set_tokens(self, access_token: str, refresh_token: str) -> None:
        logger.debug(
            f"MemoryCredentialStore.set_tokens: access_token={mask_token(access_token)}"
        )
        self._access_token = access_token
        self._refresh_token = refresh_token

    def clear(self) -> None:
        logger.debug("MemoryCredentialStore.clear")
        self._access_token = None
        self._refresh_token = None


class KeyValueCredentialStore(CredentialStore):
    """
    Credentials kept in a key-value mapping (a persisted dict, a shelf, ...).

    The same key is used to read and to write each token.
    """

    def __init__(
        self,
        storage: MutableMapping[str, str],
        access_token_key: str = ACCESS_TOKEN_KEY,
        refresh_token_key: str = REFRESH_TOKEN_KEY,
        user_key: Optional[str] = USER_KEY,
    ) -> None:
        self._storage = storage
        self._access_token_key = access_token_key
        self._refresh_token_key = refresh_token_key
        self._user_key = user_key

    def get_access_token(self) -> Optional[str]:
        return self._storage.get(self._access_token_key) or None

    def get_refresh_token(self) -> Optional[str]:
        return self._storage.get(self._refresh_token_key) or None

    def set_tokens(self, access_token: str, refresh_token: str) -> None:
        logger.debug(
            f"KeyValueCredentialStore.set_tokens: {self._access_token_key}="
            f"{mask_token(access_token)}"
        )
        self._storage[self._access_token_key] = access_token
        self._storage[self._refresh_token_key] = refresh_token

    def clear(self) -> None:
        logger.debug("KeyValueCredentialStore.clear")
        for key in (self._access_token_key, self._refresh_token_key, self._user_key):
            if key is not None:
                self._storage.pop(key, None)
