import hashlib
import hmac


def token_digest(value: str) -> str:
    """SHA-256 hex digest used to store tokens and codes at rest."""
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


def secrets_match(candidate: str, expected: str) -> bool:
    """Constant-time string equality."""
    if candidate is None or expected is None:
        return False
    return hmac.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))
