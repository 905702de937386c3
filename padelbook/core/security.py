import hashlib
import hmac
import os
import secrets
from typing import Optional, Tuple

PASSWORD_ALGORITHM = "pbkdf2_sha256"
ITERATIONS = 260_000
SALT_SIZE = 16
KEY_LENGTH = 32


def _derive(password: str, salt: bytes, iterations: int, key_length: int = KEY_LENGTH) -> bytes:
    return hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, iterations, dklen=key_length)


def _parse_hash(stored_hash: str) -> Optional[Tuple[int, bytes, bytes]]:
    """Split `algorithm$iterations$salt$key`; None when the value is not one of ours."""
    parts = (stored_hash or "").split("$")
    if len(parts) != 4 or parts[0] != PASSWORD_ALGORITHM:
        return None
    try:
        iterations, salt, key = int(parts[1]), bytes.fromhex(parts[2]), bytes.fromhex(parts[3])
    except ValueError:
        return None
    if iterations < 1 or not key:
        return None
    return iterations, salt, key


def generate_password_hash(password: str) -> str:
    salt = os.urandom(SALT_SIZE)
    key = _derive(password, salt, ITERATIONS)
    return "$".join((PASSWORD_ALGORITHM, str(ITERATIONS), salt.hex(), key.hex()))


def verify_password(password: str, stored_hash: str) -> bool:
    parsed = _parse_hash(stored_hash)
    if parsed is None:
        return False
    iterations, salt, expected = parsed
    return hmac.compare_digest(_derive(password, salt, iterations, len(expected)), expected)


def generate_token() -> str:
    return secrets.token_urlsafe(32)


def sign_payload(body: bytes, secret: str) -> str:
    """Hex HMAC-SHA256 of a raw request body."""
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()


def verify_signature(body: bytes, secret: str, signature: str) -> bool:
    if not signature or not secret:
        return False
    return hmac.compare_digest(sign_payload(body, secret), signature.strip().lower())
