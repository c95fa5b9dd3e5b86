"""
Secure Token Storage for the Grocery Store auth client.

This module persists the access and refresh tokens using the system keyring,
falling back to an encrypted file when no keyring is available. Storage errors
never propagate: a failed read is an absent token and a failed write reports
False, so the client degrades to the unauthenticated state instead of crashing.
"""

import os
import json
import logging
import threading
from typing import Optional, Dict
from pathlib import Path

import keyring
from keyring.errors import KeyringError, PasswordDeleteError
from cryptography.fernet import Fernet, InvalidToken

from shared.exceptions import TokenStorageError, ErrorCode
from shared.interfaces import ICredentialStore

logger = logging.getLogger(__name__)

ACCESS_TOKEN_KEY = "com.grocerystore.accessToken"
REFRESH_TOKEN_KEY = "com.grocerystore.refreshToken"


class SecureTokenStorage(ICredentialStore):
    """
    Secure storage for authentication tokens.

    Uses the system keyring when available, falls back to encrypted file storage.
    Each token is stored under its own fixed key; writes are atomic per key.
    """

    def __init__(
        self,
        service_name: str = "grocery-store-client",
        storage_path: Optional[Path] = None,
        use_keyring: Optional[bool] = None
    ):
        self.service_name = service_name
        if use_keyring is None:
            use_keyring = self._check_keyring_availability()
        self.keyring_available = use_keyring
        self.storage_path = Path(storage_path) if storage_path else self._get_storage_path()
        self.key_path = self.storage_path.with_suffix('.key')

        self._encryption_key: Optional[bytes] = None
        self._file_lock = threading.Lock()

        logger.info(f"Token storage initialized (keyring: {self.keyring_available})")

    def _check_keyring_availability(self) -> bool:
        """Check if system keyring is available."""
        try:
            test_key = f"{self.service_name}_test"
            keyring.set_password(self.service_name, test_key, "test")
            result = keyring.get_password(self.service_name, test_key)
            keyring.delete_password(self.service_name, test_key)
            return result == "test"
        except Exception as e:
            logger.debug(f"Keyring not available: {e}")
            return False

    def _get_storage_path(self) -> Path:
        """Get path for encrypted file storage."""
        xdg_config = os.environ.get('XDG_CONFIG_HOME')
        if xdg_config:
            config_dir = Path(xdg_config) / 'grocery-store'
        else:
            config_dir = Path.home() / '.config' / 'grocery-store'

        return config_dir / 'auth_tokens.enc'

    # Public API

    def get_access_token(self) -> Optional[str]:
        return self._read(ACCESS_TOKEN_KEY)

    def get_refresh_token(self) -> Optional[str]:
        return self._read(REFRESH_TOKEN_KEY)

    def set_access_token(self, value: Optional[str]) -> bool:
        return self._write(ACCESS_TOKEN_KEY, value)

    def set_refresh_token(self, value: Optional[str]) -> bool:
        return self._write(REFRESH_TOKEN_KEY, value)

    def clear(self) -> bool:
        """
        Delete both tokens.

        Returns:
            True if both deletions succeeded
        """
        access_cleared = self._write(ACCESS_TOKEN_KEY, None)
        refresh_cleared = self._write(REFRESH_TOKEN_KEY, None)
        if access_cleared and refresh_cleared:
            logger.info("Stored tokens cleared")
        return access_cleared and refresh_cleared

    # Dispatch

    def _read(self, key: str) -> Optional[str]:
        try:
            if self.keyring_available:
                return keyring.get_password(self.service_name, key)
            return self._load_file_tokens().get(key)
        except Exception as e:
            logger.warning(f"Failed to read {key} from secure storage: {e}")
            return None

    def _write(self, key: str, value: Optional[str]) -> bool:
        try:
            if self.keyring_available:
                self._write_keyring(key, value)
            else:
                self._write_file(key, value)
            return True
        except Exception as e:
            logger.error(f"Failed to write {key} to secure storage: {e}")
            return False

    # Keyring backend

    def _write_keyring(self, key: str, value: Optional[str]) -> None:
        if value is not None:
            keyring.set_password(self.service_name, key, value)
            return

        try:
            keyring.delete_password(self.service_name, key)
        except PasswordDeleteError:
            # Nothing stored under this key
            pass
        except KeyringError as e:
            raise TokenStorageError(f"Keyring delete failed: {e}", cause=e)

    # Encrypted file backend

    def _get_encryption_key(self) -> bytes:
        """Get or create the Fernet key for file storage."""
        if self._encryption_key:
            return self._encryption_key

        if self.key_path.exists():
            self._encryption_key = self.key_path.read_bytes().strip()
            return self._encryption_key

        key = Fernet.generate_key()
        self.key_path.parent.mkdir(parents=True, exist_ok=True)
        self._atomic_write(self.key_path, key)

        self._encryption_key = key
        return key

    def _load_file_tokens(self) -> Dict[str, str]:
        if not self.storage_path.exists():
            return {}

        fernet = Fernet(self._get_encryption_key())
        try:
            decrypted = fernet.decrypt(self.storage_path.read_bytes())
        except InvalidToken as e:
            raise TokenStorageError(
                "Token file could not be decrypted",
                error_code=ErrorCode.STORAGE_CORRUPTED,
                cause=e
            )
        return json.loads(decrypted.decode())

    def _write_file(self, key: str, value: Optional[str]) -> None:
        with self._file_lock:
            try:
                all_tokens = self._load_file_tokens()
            except TokenStorageError as e:
                logger.warning(f"Discarding unreadable token file: {e}")
                all_tokens = {}

            if value is None:
                if key not in all_tokens:
                    return
                del all_tokens[key]
            else:
                all_tokens[key] = value

            if not all_tokens:
                if self.storage_path.exists():
                    self.storage_path.unlink()
                return

            self.storage_path.parent.mkdir(parents=True, exist_ok=True)
            fernet = Fernet(self._get_encryption_key())
            self._atomic_write(self.storage_path, fernet.encrypt(json.dumps(all_tokens).encode()))

    @staticmethod
    def _atomic_write(path: Path, data: bytes) -> None:
        """Write to a temp file with restrictive permissions, then swap it in."""
        tmp_path = path.with_name(f".{path.name}.tmp")
        fd = os.open(tmp_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, 'wb') as f:
            f.write(data)
        os.replace(tmp_path, path)


class InMemoryTokenStorage(ICredentialStore):
    """Process-local credential store for tests and non-persistent sessions."""

    def __init__(self, access_token: Optional[str] = None, refresh_token: Optional[str] = None):
        self._tokens: Dict[str, str] = {}
        self._lock = threading.Lock()
        self.set_access_token(access_token)
        self.set_refresh_token(refresh_token)

    def get_access_token(self) -> Optional[str]:
        return self._tokens.get(ACCESS_TOKEN_KEY)

    def get_refresh_token(self) -> Optional[str]:
        return self._tokens.get(REFRESH_TOKEN_KEY)

    def set_access_token(self, value: Optional[str]) -> bool:
        return self._set(ACCESS_TOKEN_KEY, value)

    def set_refresh_token(self, value: Optional[str]) -> bool:
        return self._set(REFRESH_TOKEN_KEY, value)

    def clear(self) -> bool:
        with self._lock:
            self._tokens.clear()
        return True

    def _set(self, key: str, value: Optional[str]) -> bool:
        with self._lock:
            if value is None:
                self._tokens.pop(key, None)
            else:
                self._tokens[key] = value
        return True
