"""Content fingerprints for change detection."""

import hashlib


def fingerprint(content: str) -> str:
    """Return the SHA-256 hex digest of a document's text."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()
