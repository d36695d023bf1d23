"""
Presentation-only digest transforms.

PRESENTATION ONLY:
- MUST NOT be fed back into any digest computation
- MUST NOT be used for verification

Trade-off of the truncated form: only the first ``byte_count`` bytes of
the digest are shown, so two different full digests can share the same
truncated rendering. This is accepted for printed, human-readable
cross-checking only. Verification always uses the full digest.
"""

from __future__ import annotations


DEFAULT_TRUNCATED_BYTES = 20
DEFAULT_EDGE_LENGTH = 8


def group_hex(digest: str) -> str:
    """Upper-case hex pairs joined by ``-`` (32 groups for a full digest)."""
    upper = digest.upper()
    return "-".join(upper[i:i + 2] for i in range(0, len(upper), 2))


def truncated_group_hex(
    digest: str,
    byte_count: int = DEFAULT_TRUNCATED_BYTES,
) -> str:
    return group_hex(digest[: byte_count * 2])


def abbreviate(digest: str, edge_length: int = DEFAULT_EDGE_LENGTH) -> str:
    """Keep ``edge_length`` characters at each end, e.g. ``abc12345...xyz98765``."""
    if len(digest) <= edge_length * 2 + 3:
        return digest
    return f"{digest[:edge_length]}...{digest[len(digest) - edge_length:]}"
