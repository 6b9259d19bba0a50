import hmac

from paysync.core.config import get_settings
from paysync.core.exceptions import UnauthorizedError


def operator_key_matches(provided: str | None, expected: str) -> bool:
    """Constant-time comparison of the operator key header against the configured key."""
    if not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def require_operator_key(provided: str | None) -> None:
    """Raise UnauthorizedError unless the key matches. Open when no key is configured."""
    expected = get_settings().operator_api_key
    if not expected:
        return
    if not operator_key_matches(provided, expected):
        raise UnauthorizedError("Invalid or missing operator key")
