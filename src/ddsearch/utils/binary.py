"""Binary file detection utilities."""

SAMPLE_SIZE = 8000
NON_TEXT_RATIO = 0.30

# Printable ASCII + tab, LF, CR
TEXT_BYTES = frozenset(range(32, 127)) | {9, 10, 13}


def is_binary_content(content: bytes, sample_size: int = SAMPLE_SIZE) -> bool:
    """Detect if content is binary by checking for null bytes and non-text chars.

    Only the first ``sample_size`` bytes are inspected. Bytes >= 0x80 count
    as non-text, so heavily non-ASCII UTF-8 may be classified as binary.

    Args:
        content: Raw file content
        sample_size: Number of bytes to sample from the start

    Returns:
        True if content appears to be binary
    """
    if not content:
        return False

    sample = content[:sample_size]

    # Null bytes are a strong binary indicator
    if b"\x00" in sample:
        return True

    non_text = sum(1 for byte in sample if byte not in TEXT_BYTES)
    return (non_text / len(sample)) > NON_TEXT_RATIO
