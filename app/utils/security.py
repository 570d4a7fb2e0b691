import hashlib
import hmac


def hash_password(raw_password: str) -> str:
    """Return the SHA-256 hex digest of ``raw_password``.

    A single fast hash, kept for compatibility with existing credential rows.
    """
    return hashlib.sha256(raw_password.encode("utf-8")).hexdigest()


def verify_password(stored_hash: str, raw_password: str) -> bool:
    return hmac.compare_digest(stored_hash, hash_password(raw_password))
