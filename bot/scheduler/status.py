"""
Module: bot/scheduler/status.py

Read-only projection of a timer into "no timer", "ready" or "remaining time",
and rendering of the per-subject status report.
"""
from scheduler.timer import STATUS_LABELS, TIMER_KINDS
from utils import format_remaining, utcnow

NO_TIMERS_TIP = (
    "💡 **Tip:** Run `/rescue`, `/terminal command:pul`, or "
    "`/terminal command:todo` to start tracking your timers!"
)

class TimerStatus:
    """
    Status of one (subject, kind) timer.

    Attributes:
        state (str): NO_TIMER, READY or REMAINING.
        remaining (timedelta | None): Time left when state is REMAINING.
    """
    NO_TIMER = "no_timer"
    READY = "ready"
    REMAINING = "remaining"

    def __init__(self, state, remaining=None):
        self.state = state
        self.remaining = remaining

    def __eq__(self, other):
        if not isinstance(other, TimerStatus):
            return NotImplemented
        return (self.state, self.remaining) == (other.state, other.remaining)

    def __repr__(self):
        if self.state == self.REMAINING:
            return f"TimerStatus({self.state!r}, {self.remaining!r})"
        return f"TimerStatus({self.state!r})"

    def __str__(self):
        if self.state == self.NO_TIMER:
            return "No active timer"
        if self.state == self.READY:
            return "Ready now!"
        return format_remaining(self.remaining)


def timer_status(timer, now=None):
    """
    Project a Timer (or None) into a TimerStatus. Never mutates state.

    A timer at or past its target is READY until the scheduler loop
    delivers and clears it.
    """
    if timer is None:
        return TimerStatus(TimerStatus.NO_TIMER)
    remaining = timer.target_time - (now or utcnow())
    if remaining.total_seconds() <= 0:
        return TimerStatus(TimerStatus.READY)
    return TimerStatus(TimerStatus.REMAINING, remaining)


def status_report(statuses):
    """
    Render {kind: TimerStatus} as the reply to a status query.
    """
    lines = [
        f"{STATUS_LABELS[kind]}: {statuses.get(kind, TimerStatus(TimerStatus.NO_TIMER))}"
        for kind in TIMER_KINDS
    ]
    if all(status.state == TimerStatus.NO_TIMER for status in statuses.values()):
        lines.append(f"\n{NO_TIMERS_TIP}")
    return "\n".join(lines)
