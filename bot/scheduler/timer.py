"""
Module: bot/scheduler/timer.py

Provides the Timer record and the closed set of timer kinds with their
user-facing messages.
"""

RESCUE = "rescue"
CARD_PULL = "cardPull"

TIMER_KINDS = (RESCUE, CARD_PULL)

READY_MESSAGES = {
    RESCUE: "🐾 Your rescue is ready!",
    CARD_PULL: "🎴 Next Card Pull is ready!",
}

SET_MESSAGES = {
    RESCUE: "🐾 Next Rescue timer set for {remaining}",
    CARD_PULL: "🎴 Next Card Pull timer set for {remaining}",
}

STATUS_LABELS = {
    RESCUE: "🐾 Next Rescue",
    CARD_PULL: "🎴 Next Card Pull",
}


class Timer:
    """
    A single live timer for a (subject, kind) pair.

    Attributes:
        subject (str): Opaque routing identifier (a Discord channel ID).
        kind (str): One of TIMER_KINDS.
        target_time (datetime): UTC instant at which the timer fires.
        set_at (datetime): UTC instant the timer was created or last re-armed.
    """
    def __init__(self, subject, kind, target_time, set_at):
        self.subject = subject
        self.kind = kind
        self.target_time = target_time
        self.set_at = set_at

    @property
    def key(self):
        return (self.subject, self.kind)

    def __repr__(self):
        return (
            f"Timer(subject={self.subject!r}, kind={self.kind!r}, "
            f"target_time={self.target_time.isoformat()}, set_at={self.set_at.isoformat()})"
        )


class TimerEvent:
    """
    A timer update extracted from a chat message.

    Attributes:
        kind (str): One of TIMER_KINDS.
        duration (str): Free-form cooldown text, e.g. "3 hours and 31 minutes" or "1:23:45".
        epoch_hint (int | str | None): Absolute epoch seconds, preferred when non-zero.
        notify (bool): Post a "timer set" confirmation to the subject.
    """
    def __init__(self, kind, duration, epoch_hint=None, notify=False):
        self.kind = kind
        self.duration = duration
        self.epoch_hint = epoch_hint
        self.notify = notify
