"""
Ephemeral cipher for short-lived secrets.

Protects a candidate password while a signup waits for email verification.
The password must be recoverable (it becomes the account credential), so it
is encrypted rather than hashed.

Blob format: base64(nonce[12] || tag[16] || ciphertext), AES-256-GCM.

Key resolution:
    PENDING_SIGNUP_AES_KEY must be exactly 64 hex characters (32 bytes).
    Surrounding whitespace and quotes are stripped. When the variable is
    unset, a random key is generated once per process; a restart then
    invalidates outstanding pending signups, which expire within minutes
    anyway.
"""

import base64
import binascii
import logging
import os
import re
import threading
from typing import Optional

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from core import config
from core.exceptions import AuthFlowError

logger = logging.getLogger(__name__)

NONCE_LENGTH = 12
TAG_LENGTH = 16
KEY_LENGTH = 32

_HEX_KEY_RE = re.compile(r"^[0-9a-fA-F]{64}$")


class CipherKeyError(RuntimeError):
    """Configured key material is malformed (configuration error)."""


class DecryptError(AuthFlowError):
    """Ciphertext blob could not be authenticated or decoded."""
    status_code = 500
    code = "decrypt_failed"
    default_detail = "No se pudo descifrar la contraseña"


_key: Optional[bytes] = None
_key_lock = threading.Lock()


def _clean_key(raw: str) -> str:
    return raw.strip().strip("'\"").strip()


def _load_key() -> bytes:
    raw = _clean_key(config.PENDING_SIGNUP_AES_KEY or "")
    if not raw:
        logger.warning(
            "PENDING_SIGNUP_AES_KEY not set; using a per-process random key. "
            "Pending signups will not survive a restart."
        )
        return os.urandom(KEY_LENGTH)
    if not _HEX_KEY_RE.match(raw):
        raise CipherKeyError("PENDING_SIGNUP_AES_KEY must be 64 hex characters (32 bytes)")
    return bytes.fromhex(raw)


def get_key() -> bytes:
    """
    Return the process-wide key, resolving it on first use.

    The application lifespan calls this so a malformed key fails startup.
    """
    global _key
    if _key is None:
        with _key_lock:
            if _key is None:
                _key = _load_key()
    return _key


def encrypt(plaintext: str) -> str:
    """Encrypt ``plaintext`` and return the base64 blob."""
    nonce = os.urandom(NONCE_LENGTH)
    sealed = AESGCM(get_key()).encrypt(nonce, plaintext.encode("utf-8"), None)
    # cryptography appends the tag; store it ahead of the ciphertext
    ciphertext, tag = sealed[:-TAG_LENGTH], sealed[-TAG_LENGTH:]
    return base64.b64encode(nonce + tag + ciphertext).decode("ascii")


def decrypt(blob: str) -> str:
    """
    Decrypt a blob produced by :func:`encrypt`.

    Raises:
        DecryptError: malformed blob, wrong key or failed tag verification
    """
    try:
        raw = base64.b64decode(blob, validate=True)
    except (binascii.Error, ValueError, TypeError) as e:
        raise DecryptError(f"Invalid ciphertext encoding: {e}")

    if len(raw) < NONCE_LENGTH + TAG_LENGTH:
        raise DecryptError("Ciphertext too short")

    nonce = raw[:NONCE_LENGTH]
    tag = raw[NONCE_LENGTH:NONCE_LENGTH + TAG_LENGTH]
    ciphertext = raw[NONCE_LENGTH + TAG_LENGTH:]
    try:
        plaintext = AESGCM(get_key()).decrypt(nonce, ciphertext + tag, None)
    except InvalidTag:
        raise DecryptError("Ciphertext authentication failed")

    try:
        return plaintext.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecryptError(f"Plaintext is not valid UTF-8: {e}")
