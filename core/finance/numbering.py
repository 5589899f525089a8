"""Document and payment numbers: PREFIX-YYYYMMDD-NNN."""

from datetime import date


def number_prefix(prefix: str, day: date) -> str:
    """The part shared by every number issued that day, e.g. "INV-20240115-"."""
    return f"{prefix}-{day.strftime('%Y%m%d')}-"


def next_number(prefix: str, day: date, last_number: str | None, width: int = 3) -> str:
    """
    Number following `last_number` (the highest number issued that day).

    The sequence restarts at 1 each day and is zero-padded to `width`.
    A last number whose sequence cannot be parsed restarts at 1.
    """
    if last_number is None:
        sequence = 1
    else:
        try:
            sequence = int(last_number.rsplit("-", 1)[-1]) + 1
        except ValueError:
            sequence = 1

    return f"{number_prefix(prefix, day)}{sequence:0{width}d}"
