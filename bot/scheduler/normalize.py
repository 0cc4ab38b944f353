"""
Module: bot/scheduler/normalize.py

Turns free-form cooldown strings and optional epoch hints into one absolute
UTC target instant.

Accepted duration forms:
  - colon durations, read right to left: "SS", "MM:SS", "H:MM:SS"
  - unit tokens in any order, summed: "3 hours and 31 minutes", "1h 30m", "45 secs"
  - a bare number, read as seconds like the last colon component: "45"
"""
import math, re
from datetime import datetime, timedelta, UTC
from utils import utcnow

HUMAN_DURATION = re.compile(
    r'(\d+(?:\.\d+)?)\s*(hours?|hrs?|h|minutes?|mins?|m|seconds?|secs?|s)(?![a-z])',
    re.IGNORECASE
)
BARE_NUMBER = re.compile(r'\d+(?:\.\d+)?')
NOW = re.compile(r'\bnow\b', re.IGNORECASE)

_UNIT_SECONDS = {'h': 3600, 'm': 60, 's': 1}


def _clean(text):
    return (text or '').replace('*', '').strip()


def parse_cooldown(text):
    """
    Parse a colon-delimited duration ("1:23:45", "12:30", "45").

    Components are read right to left as seconds, minutes and hours. A
    component that is not a number contributes nothing.
    """
    parts = list(reversed(_clean(text).split(':')))
    seconds = 0.0
    for part, scale in zip(parts, (1, 60, 3600)):
        part = part.strip()
        if BARE_NUMBER.fullmatch(part):
            seconds += float(part) * scale
    return timedelta(seconds=seconds)


def parse_human_duration(text):
    """
    Sum every "<number><unit>" token in text. Numbers without a unit are ignored.
    """
    text = _clean(text).lower()
    if not text:
        return timedelta(0)

    seconds = 0.0
    for value, unit in HUMAN_DURATION.findall(text):
        seconds += float(value) * _UNIT_SECONDS[unit[0]]

    return timedelta(seconds=seconds)


def parse_duration(text):
    """
    Parse either duration form. Colon durations and bare numbers use the
    colon reader, so "45" is 45 seconds. Malformed or empty input gives
    timedelta(0).
    """
    text = _clean(text)
    if ':' in text or BARE_NUMBER.fullmatch(text):
        delta = parse_cooldown(text)
    else:
        delta = parse_human_duration(text)
    return delta if delta > timedelta(0) else timedelta(0)


def _epoch_seconds(hint):
    if hint is None or isinstance(hint, bool):
        return None
    try:
        value = float(hint)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(value):
        return None
    return value or None


def normalize(text, epoch_hint=None, now=None):
    """
    Compute the absolute target instant for a cooldown.

    Args:
        text (str): Free-form duration string, or anything containing "now".
        epoch_hint (int | str | None): Absolute epoch seconds; non-zero wins outright.
        now (datetime, optional): Reference instant, defaults to the current UTC time.

    Returns:
        datetime | None: The target instant, or None when the text yields no
        advance and is not the explicit "now" case. Callers ignore None.
    """
    seconds = _epoch_seconds(epoch_hint)
    if seconds is not None:
        return datetime.fromtimestamp(seconds, UTC)

    now = now or utcnow()
    if NOW.search(text or ''):
        return now

    delta = parse_duration(text)
    if not delta:
        return None
    return now + delta
