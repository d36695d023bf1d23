import hashlib

from signledger.app.utils.digest_format import (
    abbreviate,
    group_hex,
    truncated_group_hex,
)


DIGEST = hashlib.sha256(b"digest format").hexdigest()


def test_group_hex_renders_32_uppercase_pairs():
    grouped = group_hex(DIGEST)

    groups = grouped.split("-")
    assert len(groups) == 32
    assert all(len(g) == 2 for g in groups)
    assert grouped == grouped.upper()
    assert len(grouped) == 95


def test_truncated_group_hex_keeps_first_20_bytes():
    truncated = truncated_group_hex(DIGEST)

    assert truncated.split("-") == [
        DIGEST[i:i + 2].upper() for i in range(0, 40, 2)
    ]
    assert len(truncated) == 59


def test_truncated_group_hex_honours_byte_count():
    assert truncated_group_hex(DIGEST, 4) == group_hex(DIGEST[:8])


def test_abbreviate_keeps_both_edges():
    short = abbreviate(DIGEST)

    assert short == f"{DIGEST[:8]}...{DIGEST[-8:]}"
    assert len(short) == 19


def test_abbreviate_with_longer_edges():
    assert abbreviate(DIGEST, 16) == f"{DIGEST[:16]}...{DIGEST[-16:]}"


def test_abbreviate_leaves_short_values_alone():
    assert abbreviate("abc123") == "abc123"
