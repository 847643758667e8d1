"""Cache keys for link metadata.

A fingerprint is the SHA-1 hex digest of the URL's exact UTF-8 bytes.  No
normalisation happens here: ``https://example.com`` and
``https://example.com/`` are different keys.  SHA-1 keeps the key format
compatible with cache directories written by earlier builds.
"""

from __future__ import annotations

import hashlib

FINGERPRINT_LENGTH = 40


def fingerprint(url: str) -> str:
    """Return the 40-character hex cache key for *url*."""
    data = url.encode("utf-8", errors="surrogatepass")
    return hashlib.sha1(data, usedforsecurity=False).hexdigest()
