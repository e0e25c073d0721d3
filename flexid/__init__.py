from flexid.core.exceptions import ClockRangeError, ConfigError, SequenceOverflowError
from flexid.core.layout import BitLayout, make_mask
from flexid.utils.checksum import checksum, verify_checksum
from flexid.utils.extract import (
    decode,
    extract_checksum,
    extract_millis,
    extract_partition,
    extract_raw_millis,
    extract_sequence,
)
from flexid.utils.partition import make_partition
from flexid.utils.snowflake import FlexIdGenerator

__version__ = "0.1.0"

__all__ = [
    "BitLayout",
    "ClockRangeError",
    "ConfigError",
    "FlexIdGenerator",
    "SequenceOverflowError",
    "checksum",
    "decode",
    "extract_checksum",
    "extract_millis",
    "extract_partition",
    "extract_raw_millis",
    "extract_sequence",
    "make_mask",
    "make_partition",
    "verify_checksum",
]
