"""
Module: bot/utils.py

Provides utility functions for logging, parsing intervals, converting instants
to and from epoch microseconds, and formatting remaining time.
"""
import importlib, inspect, os, re
from datetime import datetime, timedelta, UTC
from colorama import init, Fore, Style

init(autoreset=True)

EPOCH = datetime(1970, 1, 1, tzinfo=UTC)
ONE_MICROSECOND = timedelta(microseconds=1)

def log_message(message, level="info"):
    """
    Print a timestamped, colored log message with the caller's relative source path.

    Parameters:
    - message: The log message string.
    - level: One of "info", "debug", "warning", or "error" for coloring.
    """

    frame    = inspect.currentframe().f_back
    fullpath = frame.f_code.co_filename
    cwd      = os.getcwd()
    if fullpath.startswith(cwd + os.sep):
        filename = fullpath[len(cwd)+1:]
    else:
        filename = fullpath
    lineno   = frame.f_lineno

    timestamp = f"[{datetime.now(UTC).strftime('%Y-%m-%d %H:%M:%S')}]"
    color_map = {
        "info": Fore.GREEN,
        "debug": Fore.BLUE,
        "warning": Fore.YELLOW,
        "error": Fore.RED
    }
    level_prefix = f"{level.upper():<7}"
    level_color = color_map.get(level.lower(), Fore.WHITE)

    prefix = f"[{timestamp}] {filename}({lineno}):"
    print(f"{prefix} {level_color}{level_prefix} {message}{Style.RESET_ALL}")


def parse_interval(interval_str):
    """
    Parse an interval string into a (value, unit) tuple.

    Supported formats: digits + unit, where unit is one of
    s, m, h, d, w, optionally with suffixes like "hours", "days".

    Returns (int(value), str(unit)) if valid, otherwise (None, None).
    """
    pattern = r'^(\d+)\s*([smhdw])(?:ec(?:ond)?|in(?:ute)?|our|ay|(?:ee)?k)?s?$'
    match = re.match(pattern, interval_str or '', re.IGNORECASE)
    if not match:
        return None, None
    return int(match.group(1)), match.group(2).lower()


def interval_to_timedelta(value, unit):
    """
    Convert an interval value and unit into a timedelta.

    Supported units:
      s - seconds
      m - minutes
      h - hours
      d - days
      w - weeks

    Returns a datetime.timedelta or None if the unit is invalid.
    """

    # Guard against missing or invalid inputs
    if value is None or unit is None:
        return None

    delta_map = {
        's': timedelta(seconds=value),
        'm': timedelta(minutes=value),
        'h': timedelta(hours=value),
        'd': timedelta(days=value),
        'w': timedelta(weeks=value)
    }
    return delta_map.get(unit)


def utcnow():
    return datetime.now(UTC)


def to_epoch_us(when):
    """
    Convert an aware datetime into integer epoch microseconds.

    Integer arithmetic keeps the conversion exact, so a stored instant reads
    back equal to the one that was written.
    """
    return (when - EPOCH) // ONE_MICROSECOND


def from_epoch_us(us):
    """
    Convert integer epoch microseconds into a UTC datetime.

    Raises TypeError for anything that is not an int, so callers can treat
    a stored value of the wrong type as corrupt.
    """
    if isinstance(us, bool) or not isinstance(us, int):
        raise TypeError(f"expected integer epoch microseconds, got {us!r}")
    return EPOCH + timedelta(microseconds=us)


def format_remaining(delta):
    """
    Render a remaining duration as e.g. "3h 31m 0s".

    Zero or negative durations render as "0s".
    """
    if delta is None:
        return '0s'
    ms = int(delta.total_seconds() * 1000)
    if ms <= 0:
        return '0s'

    hrs = ms // 3600000
    mins = (ms % 3600000) // 60000
    secs = (ms % 60000) // 1000

    return f"{f'{hrs}h ' if hrs > 0 else ''}{f'{mins}m ' if mins > 0 else ''}{secs}s"


def load_callable(path):
    """
    Import a callable from a dotted "package.module:function" path.
    """
    module_name, _, attr = path.partition(':')
    if not attr:
        raise ValueError(f"Expected 'module:function', got {path!r}")
    module = importlib.import_module(module_name)
    return getattr(module, attr)
