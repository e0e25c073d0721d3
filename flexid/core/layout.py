"""
Bit Layout Module

Describes how a FlexId packs its fields into a single unsigned integer and
validates the requested split of bits before any id is produced.

Layout (most significant to least significant):

    | 1 bit  |   time_bits   | sequence_bits | partition_bits | checksum_bits |
    |   0    | ms since epoch| per-ms counter|   shard tag    |  Luhn nibble  |

    - Reserved bit: always 0 so the value stays non-negative as a signed int64
    - Time: whatever remains of the 63 usable bits
    - Sequence, partition: 0-14 bits each
    - Checksum: 0 (disabled) or 4 bits

With the defaults (6/6/4) the time field is 47 bits wide, about 4,463 years
of milliseconds from 2000-01-01 UTC.
"""

from datetime import datetime, timedelta, timezone

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from flexid.core.exceptions import ConfigError

DEFAULT_EPOCH = 946684800000  # 2000-01-01 00:00:00 UTC
MAX_FIELD_BITS = 15
USABLE_BITS = 63
CHECKSUM_WIDTHS = (0, 4)

_UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def make_mask(bits: int) -> int:
    """Returns a mask covering the lowest `bits` bits."""
    if bits == 0:
        return 0
    return (1 << bits) - 1


def millis_to_datetime(millis: int):
    """Converts absolute Unix milliseconds to an aware UTC datetime.

    Returns None when the instant is outside the range datetime can represent.
    """
    try:
        return _UNIX_EPOCH + timedelta(milliseconds=millis)
    except OverflowError:
        return None


class BitLayout(BaseModel):
    """An immutable, validated split of bits among the fields of an id.

    Construction is the single validation point: an invalid combination of
    widths raises ConfigError and no layout object is produced.

    Attributes:
        epoch: Milliseconds subtracted from wall-clock time before encoding.
        sequence_bits: Width of the per-millisecond counter.
        partition_bits: Width of the partition (shard) tag.
        checksum_bits: Width of the checksum nibble, 0 or 4.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    epoch: int = Field(
        DEFAULT_EPOCH,
        description="Zero point of the time field in Unix milliseconds",
    )
    sequence_bits: int = Field(6, ge=0, lt=MAX_FIELD_BITS)
    partition_bits: int = Field(6, ge=0, lt=MAX_FIELD_BITS)
    checksum_bits: int = Field(4, ge=0, lt=MAX_FIELD_BITS)

    def __init__(self, **data):
        try:
            super().__init__(**data)
        except ValidationError as e:
            raise ConfigError(_format_errors(e)) from e

    @model_validator(mode="after")
    def validate_widths(self):
        """Reject checksum widths other than 0 or 4 and layouts wider than 63 bits."""
        if self.checksum_bits not in CHECKSUM_WIDTHS:
            raise ValueError(
                f"checksum_bits must be one of {CHECKSUM_WIDTHS}, got {self.checksum_bits}"
            )

        used = self.sequence_bits + self.partition_bits + self.checksum_bits
        if used > USABLE_BITS:
            raise ValueError(f"Layout uses {used} bits, only {USABLE_BITS} are usable")

        return self

    @classmethod
    def from_settings(cls, settings) -> "BitLayout":
        return cls(
            epoch=settings.EPOCH,
            sequence_bits=settings.SEQUENCE_BITS,
            partition_bits=settings.PARTITION_BITS,
            checksum_bits=settings.CHECKSUM_BITS,
        )

    def model_copy(self, *, update=None, deep=False) -> "BitLayout":
        """Returns a copy; updated widths go through the same validation."""
        if not update:
            return super().model_copy(deep=deep)
        return type(self)(**{**self.model_dump(), **update})

    @property
    def time_bits(self) -> int:
        return USABLE_BITS - self.sequence_bits - self.partition_bits - self.checksum_bits

    @property
    def sequence_mask(self) -> int:
        return make_mask(self.sequence_bits)

    @property
    def partition_mask(self) -> int:
        return make_mask(self.partition_bits)

    @property
    def checksum_mask(self) -> int:
        return make_mask(self.checksum_bits)

    @property
    def max_millis(self) -> int:
        """Largest epoch-relative millisecond the time field can hold."""
        return make_mask(self.time_bits)

    @property
    def checksum_shift(self) -> int:
        return 0

    @property
    def partition_shift(self) -> int:
        return self.checksum_bits

    @property
    def sequence_shift(self) -> int:
        return self.checksum_bits + self.partition_bits

    @property
    def time_shift(self) -> int:
        return self.checksum_bits + self.partition_bits + self.sequence_bits

    def describe(self) -> str:
        """Summarizes the capacity of this layout in one line.

        Returns:
            The time range in years with its first and last instants, and the
            number of sequences per millisecond and of partitions.
        """
        span = 1 << self.time_bits
        years = round(span / 1000 / 60 / 60 / 24 / 365)
        start = millis_to_datetime(self.epoch)
        end = millis_to_datetime(self.epoch + span)

        return (
            f"Ids have a time range of {years} years "
            f"({_format_instant(start)} to {_format_instant(end)}), "
            f"{1 << self.sequence_bits} sequences, "
            f"{1 << self.partition_bits} partitions, "
            f"checksum {'enabled' if self.checksum_bits else 'disabled'}"
        )


def _format_instant(instant) -> str:
    if instant is None:
        return "out of range"
    return instant.isoformat()


def _format_errors(error: ValidationError) -> str:
    messages = []
    for detail in error.errors():
        field = ".".join(str(part) for part in detail["loc"]) or "layout"
        messages.append(f"{field}: {detail['msg']}")
    return "Invalid bit layout: " + "; ".join(messages)
