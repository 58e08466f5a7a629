"""
Credential Persistence

Provides:
- CredentialStore interface (credentials + token slots)
- MemoryCredentialStore
- EncryptedCredentialStore: Fernet-encrypted JSON files, key derived from a
  passphrase with PBKDF2-HMAC-SHA256
- PersistentTokenStore: exposes any CredentialStore as a TokenStore
"""

from __future__ import annotations

import base64
import json
import os
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union

from cryptography.fernet import Fernet, InvalidToken
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC
from loguru import logger

from .auth import AccessToken, Credentials, TokenStore
from .errors import SerializationError

KDF_ITERATIONS = 390_000
SALT_BYTES = 16


class CredentialStore(ABC):
    """Remembers the user's credentials and the current session token."""

    @abstractmethod
    def get_credentials(self) -> Optional[Credentials]:
        ...

    @abstractmethod
    def store_credentials(self, credentials: Credentials) -> None:
        ...

    @abstractmethod
    def clear_credentials(self) -> None:
        ...

    @abstractmethod
    def get_token(self) -> Optional[AccessToken]:
        ...

    @abstractmethod
    def store_token(self, token: AccessToken) -> None:
        ...

    @abstractmethod
    def clear_token(self) -> None:
        ...


class MemoryCredentialStore(CredentialStore):
    """Lock-guarded in-memory slots."""

    def __init__(self) -> None:
        self._credentials: Optional[Credentials] = None
        self._token: Optional[AccessToken] = None
        self._lock = threading.Lock()

    def get_credentials(self) -> Optional[Credentials]:
        with self._lock:
            return self._credentials

    def store_credentials(self, credentials: Credentials) -> None:
        with self._lock:
            self._credentials = credentials

    def clear_credentials(self) -> None:
        with self._lock:
            self._credentials = None

    def get_token(self) -> Optional[AccessToken]:
        with self._lock:
            return self._token

    def store_token(self, token: AccessToken) -> None:
        with self._lock:
            self._token = token

    def clear_token(self) -> None:
        with self._lock:
            self._token = None


def derive_key(passphrase: str, salt: bytes, iterations: int = KDF_ITERATIONS) -> bytes:
    """Fernet key (urlsafe base64 of 32 bytes) from a passphrase and salt."""
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=32,
        salt=salt,
        iterations=iterations,
    )
    return base64.urlsafe_b64encode(kdf.derive(passphrase.encode("utf-8")))


class EncryptedCredentialStore(CredentialStore):
    """
    Credentials and token persisted as encrypted JSON files.

    Each file holds ``{"salt": <b64>, "data": <fernet token>}``. A fresh salt
    is drawn on every write. Reads go through an in-memory cache so the KDF
    runs once per value, not once per lookup.

    Args:
        credentials_path: File for the username/password document.
        token_path: File for the access token document.
        passphrase: Secret the encryption key is derived from.

    Raises:
        SerializationError: On read, if the passphrase is wrong or the file
            was tampered with or is not a store document.
    """

    def __init__(
        self,
        credentials_path: Union[str, Path],
        token_path: Union[str, Path],
        passphrase: str,
    ) -> None:
        if not passphrase:
            raise ValueError("passphrase must not be empty")
        self._credentials_path = Path(credentials_path)
        self._token_path = Path(token_path)
        self._passphrase = passphrase
        self._lock = threading.Lock()
        self._credentials_cache: Optional[Credentials] = None
        self._token_cache: Optional[AccessToken] = None

    # -------------------------------------------------------------------------
    # File helpers
    # -------------------------------------------------------------------------

    def _encrypt(self, document: Dict[str, Any]) -> str:
        salt = os.urandom(SALT_BYTES)
        fernet = Fernet(derive_key(self._passphrase, salt))
        ciphertext = fernet.encrypt(json.dumps(document).encode("utf-8"))
        return json.dumps({
            "salt": base64.b64encode(salt).decode("ascii"),
            "data": ciphertext.decode("ascii"),
        })

    def _decrypt(self, raw: str, path: Path) -> Dict[str, Any]:
        try:
            envelope = json.loads(raw)
            salt = base64.b64decode(envelope["salt"])
            fernet = Fernet(derive_key(self._passphrase, salt))
            return json.loads(fernet.decrypt(envelope["data"].encode("ascii")))
        except InvalidToken as e:
            raise SerializationError(f"Cannot decrypt {path}: wrong passphrase or corrupted file") from e
        except (ValueError, KeyError, TypeError) as e:
            raise SerializationError(f"Malformed store file {path}: {e}") from e

    def _write(self, path: Path, document: Dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(self._encrypt(document), encoding="utf-8")
        os.chmod(tmp, 0o600)
        os.replace(tmp, path)

    def _read(self, path: Path) -> Optional[Dict[str, Any]]:
        if not path.exists():
            return None
        return self._decrypt(path.read_text(encoding="utf-8"), path)

    @staticmethod
    def _remove(path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            pass

    # -------------------------------------------------------------------------
    # CredentialStore
    # -------------------------------------------------------------------------

    def get_credentials(self) -> Optional[Credentials]:
        with self._lock:
            if self._credentials_cache is None:
                document = self._read(self._credentials_path)
                if document is not None:
                    self._credentials_cache = Credentials.from_dict(document)
            return self._credentials_cache

    def store_credentials(self, credentials: Credentials) -> None:
        with self._lock:
            self._write(self._credentials_path, credentials.to_dict())
            self._credentials_cache = credentials
        logger.debug(f"Stored credentials at {self._credentials_path}")

    def clear_credentials(self) -> None:
        with self._lock:
            self._remove(self._credentials_path)
            self._credentials_cache = None

    def get_token(self) -> Optional[AccessToken]:
        with self._lock:
            if self._token_cache is None:
                document = self._read(self._token_path)
                if document is not None:
                    self._token_cache = AccessToken.from_dict(document)
            return self._token_cache

    def store_token(self, token: AccessToken) -> None:
        with self._lock:
            self._write(self._token_path, token.to_dict())
            self._token_cache = token
        logger.debug(f"Stored token at {self._token_path}")

    def clear_token(self) -> None:
        with self._lock:
            self._remove(self._token_path)
            self._token_cache = None

    def __repr__(self) -> str:
        return (
            f"EncryptedCredentialStore(credentials_path={str(self._credentials_path)!r}, "
            f"token_path={str(self._token_path)!r})"
        )


class PersistentTokenStore(TokenStore):
    """TokenStore backed by the token slot of a CredentialStore."""

    def __init__(self, credential_store: CredentialStore) -> None:
        self._store = credential_store

    def get(self) -> Optional[AccessToken]:
        return self._store.get_token()

    def store(self, token: AccessToken) -> None:
        self._store.store_token(token)

    def clear(self) -> None:
        self._store.clear_token()
