"""
Time-ordered identifiers for events, commands and grant batches

IDs sort by creation time (millisecond prefix) so the journal reads in
order even when two events share an occurred_at second.
"""

import secrets
import time


def generate_id() -> str:
    """
    Generate a UUIDv7-shaped identifier

    Layout: 48-bit millisecond timestamp, version nibble 7, 12 random bits,
    variant bits 10, 62 random bits.
    """
    timestamp_ms = int(time.time() * 1000) & 0xFFFFFFFFFFFF
    value = (timestamp_ms << 80) | (0x7 << 76) | (secrets.randbits(12) << 64)
    value |= (0b10 << 62) | secrets.randbits(62)

    hex_value = f"{value:032x}"
    return (
        f"{hex_value[:8]}-{hex_value[8:12]}-{hex_value[12:16]}-"
        f"{hex_value[16:20]}-{hex_value[20:]}"
    )
