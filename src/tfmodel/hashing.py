"""Directory naming for cached models."""

from __future__ import annotations


def hash_code(value: str) -> str:
    """Return the 31-multiplier string hash of ``value`` as a signed decimal string.

    Iterates over UTF-16 code units and wraps to a signed 32-bit integer after
    every step, so the result matches directory names written by the
    JavaScript tf-model node. This names directories; it is not an integrity check.
    """
    h = 0
    if not value:
        return str(h)
    data = value.encode("utf-16-le", "surrogatepass")
    for i in range(0, len(data), 2):
        unit = data[i] | (data[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return str(h)
