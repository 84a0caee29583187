"""Matrix user identifier helpers."""

import re

_FULLY_QUALIFIED = re.compile(r"^@.*:.*")


def normalize_username(raw: str, domain: str) -> str:
    """Turn ``alice``, ``@alice`` or ``@alice:example.org`` into a full user ID.

    Any string is accepted; no character-set or length checks are made.
    """
    if _FULLY_QUALIFIED.match(raw):
        return raw
    if raw.startswith("@"):
        return f"{raw}:{domain}"
    return f"@{raw}:{domain}"
