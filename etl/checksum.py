"""Content digests used for change detection."""

import hashlib
from typing import Union


def digest(content: Union[bytes, str]) -> str:
    """Return the SHA-256 hex digest of ``content``.

    Text is encoded as UTF-8 first so a decoded payload hashes the same as
    the bytes it came from.
    """
    if isinstance(content, str):
        content = content.encode("utf-8")
    return hashlib.sha256(content).hexdigest()
