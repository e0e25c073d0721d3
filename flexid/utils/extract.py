"""
Field extraction for packed ids.

Every function here is total: any integer decodes to something, and an id
produced under a different layout simply decodes to meaningless fields.
"""

from flexid.core.layout import BitLayout, millis_to_datetime
from flexid.core.schema import DecodedId
from flexid.utils.checksum import verify_checksum


def extract_raw_millis(layout: BitLayout, value: int) -> int:
    """Returns the time field, in milliseconds since the layout epoch."""
    return value >> layout.time_shift


def extract_millis(layout: BitLayout, value: int) -> int:
    """Returns the time field as absolute Unix milliseconds."""
    return extract_raw_millis(layout, value) + layout.epoch


def extract_sequence(layout: BitLayout, value: int) -> int:
    return (value >> layout.sequence_shift) & layout.sequence_mask


def extract_partition(layout: BitLayout, value: int) -> int:
    return (value >> layout.partition_shift) & layout.partition_mask


def extract_checksum(layout: BitLayout, value: int) -> int:
    """Returns the check nibble; always 0 for layouts without a checksum."""
    return value & layout.checksum_mask


def decode(layout: BitLayout, value: int) -> DecodedId:
    """Breaks an id into all of its fields.

    Args:
        layout: The layout the id was generated with.
        value: The packed id.

    Returns:
        DecodedId: The fields, with checksum and validity left as None when
        the layout carries no checksum.
    """
    millis = extract_millis(layout, value)
    has_checksum = layout.checksum_bits > 0

    return DecodedId(
        id=value,
        millis=millis,
        raw_millis=extract_raw_millis(layout, value),
        sequence=extract_sequence(layout, value),
        partition=extract_partition(layout, value),
        checksum=extract_checksum(layout, value) if has_checksum else None,
        valid=verify_checksum(value) if has_checksum else None,
        generated_at=millis_to_datetime(millis),
    )
