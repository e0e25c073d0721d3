class ConfigError(ValueError):
    """Raised when a bit layout is given an invalid combination of widths."""

    pass


class SequenceOverflowError(OverflowError):
    """Raised when a generator runs out of sequence values within one millisecond."""

    pass


class ClockRangeError(ValueError):
    """Raised when the clock reads a time the layout's time field cannot hold."""

    pass
