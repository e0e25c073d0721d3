"""
FlexId Generator Module

A Snowflake-style generator for unique, roughly time-ordered identifiers whose
bit layout is chosen at construction time. Each id packs a millisecond
timestamp, a per-millisecond sequence counter, a partition (shard) tag and an
optional Luhn mod 16 check nibble into one non-negative 64-bit integer.

Algorithm Overview:
    With the default layout the id is structured as:

    |1 bit|          47 bits          | 6 bits  |  6 bits   | 4 bits   |
    |sign |        timestamp          |sequence | partition | checksum |
    | 0   | milliseconds since epoch  |  0-63   |   0-63    |  0-14    |

    - Sign bit: Always 0 (positive number)
    - Timestamp: milliseconds since the layout epoch (2000-01-01 UTC)
    - Sequence: ids issued in the same millisecond on this generator
    - Partition: caller-supplied shard tag, masked to the field width
    - Checksum: Luhn mod 16 digit over the other 15 nibbles

Sequence Handling:
    - The first id of a millisecond gets sequence 0
    - Each further id in the same millisecond increments the sequence
    - Exhausting the sequence field raises SequenceOverflowError instead of
      wrapping, since a wrapped sequence would repeat an id already issued
    - generate_blocking() waits for the next millisecond and retries

Thread Safety:
    - Uses threading.Lock() for atomic ID generation
    - The clock read, sequence update and overflow check are one critical section
    - Generator state is private to the instance; instances share nothing

Clock Considerations:
    - The clock is injectable: any callable returning Unix milliseconds
    - A clock reading outside the time field raises ClockRangeError
    - Backward clock movement is logged but not corrected; ids issued after
      the jump may repeat ids issued before it
    - State is not persisted, so a restart within the same millisecond
      can also repeat ids
"""

import logging
import threading
import time
from typing import Callable, Optional

from flexid.core.exceptions import ClockRangeError, SequenceOverflowError
from flexid.core.layout import BitLayout
from flexid.core.schema import DecodedId
from flexid.utils import extract
from flexid.utils.checksum import checksum

logger = logging.getLogger("flexid")

WAIT_INTERVAL_S = 0.0002


def system_millis() -> int:
    """Returns the current wall-clock time in Unix milliseconds."""
    return int(time.time() * 1000)


class FlexIdGenerator:
    """A thread-safe generator of FlexId values for one bit layout.

    Attributes:
        layout: The validated bit layout ids are packed with.
    """

    def __init__(
        self,
        layout: Optional[BitLayout] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        """Initializes a new generator instance.

        Args:
            layout: The bit layout to use. Defaults to BitLayout().
            clock: Callable returning the current time in Unix milliseconds.
                Defaults to the system clock.
        """
        self.layout = layout if layout is not None else BitLayout()
        self._clock = clock if clock is not None else system_millis
        self._last_ms = -1
        self._last_seq = 0
        self.lock = threading.Lock()

    def _current_millis(self) -> int:
        """Returns the current time in milliseconds since the layout epoch."""
        return self._clock() - self.layout.epoch

    def _wait_for_next_millis(self, last_ms: int, deadline: float) -> bool:
        """Waits until the clock passes the exhausted millisecond.

        Args:
            last_ms: The millisecond whose sequence is exhausted.
            deadline: time.monotonic() value after which to give up.

        Returns:
            True once the clock has moved on, False if the deadline passed first.
        """
        while self._current_millis() <= last_ms:
            if time.monotonic() >= deadline:
                return False
            time.sleep(WAIT_INTERVAL_S)
        return True

    def _pack(self, ms: int, seq: int, partition: int) -> int:
        layout = self.layout
        value = (
            (ms << layout.time_shift)
            | (seq << layout.sequence_shift)
            | ((partition & layout.partition_mask) << layout.partition_shift)
        )
        if layout.checksum_bits:
            value = checksum(value)
        return value

    def generate(self, partition: int) -> int:
        """Generates a new unique id.

        Partition values wider than the partition field are masked: only the
        low partition_bits bits are kept.

        Args:
            partition: The partition (shard) tag to embed.

        Returns:
            The packed id.

        Raises:
            SequenceOverflowError: If this millisecond's sequence is exhausted.
            ClockRangeError: If the clock is before the epoch or past the time field.
        """
        with self.lock:
            ms = self._current_millis()

            if not 0 <= ms <= self.layout.max_millis:
                raise ClockRangeError(
                    f"Clock is {ms} ms from the epoch, outside 0-{self.layout.max_millis}"
                )

            if ms < self._last_ms:
                logger.warning(
                    "Clock moved backward by %d ms; ids may repeat", self._last_ms - ms
                )

            next_seq = self._last_seq + 1 if ms == self._last_ms else 0
            seq = next_seq & self.layout.sequence_mask
            if next_seq != 0 and seq == 0:
                raise SequenceOverflowError(
                    f"Sequence exhausted: {next_seq} ids requested in millisecond {ms}"
                )

            self._last_ms = ms
            self._last_seq = seq

        return self._pack(ms, seq, partition)

    def generate_blocking(self, partition: int, max_wait_ms: int = 5) -> int:
        """Generates an id, waiting for the next millisecond on sequence overflow.

        Args:
            partition: The partition (shard) tag to embed.
            max_wait_ms: How long to wait for the clock to advance, in real time.

        Raises:
            SequenceOverflowError: If the clock did not advance in time.
        """
        deadline = time.monotonic() + max_wait_ms / 1000
        while True:
            try:
                return self.generate(partition)
            except SequenceOverflowError:
                with self.lock:
                    last_ms = self._last_ms
                if not self._wait_for_next_millis(last_ms, deadline):
                    raise

    def generate_many(self, partition: int, count: int, max_wait_ms: int = 5) -> list:
        """Generates `count` ids for one partition, waiting out sequence overflows."""
        return [self.generate_blocking(partition, max_wait_ms) for _ in range(count)]

    def extract_raw_millis(self, value: int) -> int:
        return extract.extract_raw_millis(self.layout, value)

    def extract_millis(self, value: int) -> int:
        return extract.extract_millis(self.layout, value)

    def extract_sequence(self, value: int) -> int:
        return extract.extract_sequence(self.layout, value)

    def extract_partition(self, value: int) -> int:
        return extract.extract_partition(self.layout, value)

    def extract_checksum(self, value: int) -> int:
        return extract.extract_checksum(self.layout, value)

    def decode(self, value: int) -> DecodedId:
        return extract.decode(self.layout, value)

    def log_layout(self):
        """Logs a summary of the layout's capacity."""
        logger.info(self.layout.describe())
