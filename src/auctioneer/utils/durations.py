"""Duration string parsing for configuration values.

Configuration files express intervals as a number followed by a unit,
for example ``"2s"`` for the stream debounce window or ``"30m"`` for the
agent activity window. Fractional values are accepted (``"0.5s"``) so
tests and local setups can shrink timers without changing units.
"""

import re

SECONDS_PER_MILLISECOND = 0.001
SECONDS_PER_SECOND = 1
SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86_400

DURATION_MULTIPLIERS = {
    "ms": SECONDS_PER_MILLISECOND,
    "s": SECONDS_PER_SECOND,
    "m": SECONDS_PER_MINUTE,
    "h": SECONDS_PER_HOUR,
    "d": SECONDS_PER_DAY,
}

_DURATION_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)(ms|s|m|h|d)$")


def parse_duration_seconds(duration_str: str) -> float:
    """Parse a duration string (e.g. '500ms', '2s', '30m', '1h') into seconds.

    Args:
        duration_str: Duration string with format: number + unit
                      Units: 'ms', 's', 'm' (minutes), 'h', 'd'

    Returns:
        Number of seconds as float

    Raises:
        ValueError: If the format is invalid or the duration is not positive

    Examples:
        >>> parse_duration_seconds('2s')
        2.0
        >>> parse_duration_seconds('30m')
        1800.0
    """
    match = _DURATION_PATTERN.match(duration_str.lower().strip())
    if not match:
        raise ValueError(
            f"Invalid duration format: '{duration_str}'. "
            "Expected format: <number><unit> (e.g., '500ms', '2s', '30m', '1h')"
        )

    value = float(match.group(1))
    if value <= 0:
        raise ValueError(
            f"Duration must be positive: '{duration_str}'. Zero duration is not allowed."
        )

    return value * DURATION_MULTIPLIERS[match.group(2)]
