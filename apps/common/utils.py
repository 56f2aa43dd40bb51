import re
from decimal import ROUND_HALF_UP, Decimal


_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9.-]")


def round_half_up(value, places: int = 0):
    """
    Round like a calculator rather than like ``round()`` (banker's rounding).
    Returns an ``int`` when ``places`` is 0, a ``float`` otherwise.
    """
    quantum = Decimal(1).scaleb(-places)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    if places == 0:
        return int(rounded)
    return float(rounded)


def sanitize_filename(filename: str) -> str:
    """Replace anything but letters, digits, dots and dashes with underscores."""
    if not filename:
        return "file"
    return _UNSAFE_FILENAME_CHARS.sub("_", filename)
