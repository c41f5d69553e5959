"""
Bit field helpers.

Severity and destination flags share one integer space, so every
decision the debugger makes is a mask test on a plain int.
"""

from modular.debugger.records import SEVERITY_MASK


def has_bits(flags: int, mask: int) -> bool:
    """True if any bit of `mask` is set in `flags`."""
    return (int(flags) & int(mask)) != 0


def set_bits(flags: int, mask: int) -> int:
    return int(flags) | int(mask)


def clear_bits(flags: int, mask: int) -> int:
    return int(flags) & ~int(mask)


def severity_of(flags: int) -> int:
    """Strip destination bits, leaving only the severity part."""
    return int(flags) & SEVERITY_MASK
