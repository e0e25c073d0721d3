"""
Luhn mod 16 Checksum Module

Error detection for ids that people read, copy and type by hand. The lowest
nibble of a checksummed id holds a check digit computed with the Luhn
algorithm generalized to hexadecimal digits.

Algorithm Overview:
    - Walk the nibbles from the least significant upwards
    - Alternate the weight between 1 and 2
    - Fold each weighted nibble as (addend // 0xF) + (addend % 0xF)
    - The check digit brings the folded sum to a multiple of 0xF

Encoding starts with weight 2 on the nibble just above the check nibble,
because the check digit is not known yet. Verification starts with weight 1
on the check nibble itself, so both walks give every nibble the same weight.
A mistyped check nibble is always detected.
"""

NIBBLE_BITS = 4
NIBBLE_MASK = 0xF
NIBBLE_COUNT = 16
MODULUS = 0xF


def _luhn_sum(value: int, nibbles: int, weight: int) -> int:
    total = 0
    for _ in range(nibbles):
        addend = (value & NIBBLE_MASK) * weight
        total += addend // MODULUS + addend % MODULUS
        weight = 3 - weight
        value >>= NIBBLE_BITS
    return total


def checksum(value: int) -> int:
    """Replaces the low nibble of a 64-bit value with its Luhn mod 16 check digit.

    Args:
        value: The id to protect. Its current low nibble is ignored.

    Returns:
        The value with the check digit in its lowest 4 bits.
    """
    total = _luhn_sum(value >> NIBBLE_BITS, NIBBLE_COUNT - 1, 2)
    check = (MODULUS - total % MODULUS) % MODULUS
    return (value & ~NIBBLE_MASK) | check


def verify_checksum(value: int) -> bool:
    """Returns True if the low nibble of a 64-bit value is a valid check digit."""
    return _luhn_sum(value, NIBBLE_COUNT, 1) % MODULUS == 0
