"""
Module: bot/scheduler/manager.py

Defines TimerScheduler: the fixed-interval poll over the due-timer index,
startup recovery of timers missed while offline, and the public API for
setting timers and reading their status.
"""
from datetime import timedelta
from config import LATE_THRESHOLD
from scheduler.normalize import normalize
from scheduler.status import timer_status
from scheduler.timer import READY_MESSAGES, SET_MESSAGES, TIMER_KINDS
from utils import log_message, utcnow, format_remaining

class TimerScheduler:
    """
    Orchestrates due-timer polling, delivery and timer updates.

    Responsibilities:
      - Each tick, deliver every due timer in earliest-deadline order.
      - On startup, run one extra tick to deliver timers missed while offline.
      - Normalize incoming events and (re)arm timers.
      - Answer status queries from the store.

    Attributes:
      store: TimerStore with the persisted timers.
      delivery: DeliveryManager applying the retry policy.
      transport: Async callable used for "timer set" confirmations.
      late_threshold (timedelta): Lateness above which a warning is logged.
    """
    def __init__(self, store, delivery, transport, late_threshold=LATE_THRESHOLD):
        self.store = store
        self.delivery = delivery
        self.transport = transport
        self.late_threshold = late_threshold

    async def recover(self):
        """
        Deliver everything that came due while the process was not running.
        """
        log_message("Recovering timers missed while offline", "info")
        delivered = await self.tick()
        log_message(f"Recovery pass delivered {delivered} timer(s)", "info")
        return delivered

    async def tick(self, now=None):
        """
        Run one poll: deliver every timer due at `now`.

        Pairs cleared, re-armed to the future, or with a retry in flight since
        the index snapshot are skipped. Errors are logged per pair.

        Returns:
            int: Number of timers delivered and cleared.
        """
        now = now or utcnow()
        delivered = 0
        for subject, kind in self.store.due_before(now):
            try:
                if self.delivery.is_in_flight(subject, kind):
                    continue
                timer = self.store.get(subject, kind)
                if timer is None or timer.target_time > now:
                    continue

                lateness = now - timer.target_time
                if lateness > self.late_threshold:
                    log_message(
                        f"{kind} timer for {subject} is {format_remaining(lateness)} late",
                        "warning"
                    )

                if await self.delivery.deliver(timer, READY_MESSAGES[kind]):
                    self.store.clear(subject, kind, target_time=timer.target_time)
                    delivered += 1
            except Exception as e:
                log_message(f"Error processing {kind} timer for {subject}: {e}", "error")
        return delivered

    async def set_timer(self, subject, kind, target_time, notify_on_set=False):
        """
        Create or re-arm the (subject, kind) timer.

        Args:
            notify_on_set (bool): Post a confirmation with the remaining time.
                Skipped when the target is not in the future.
        """
        timer = self.store.set(subject, kind, target_time)
        delay = timer.target_time - timer.set_at
        log_message(
            f"{kind} reminder for channel {timer.subject} scheduled in {round(delay.total_seconds())}s",
            "info"
        )

        if notify_on_set and delay > timedelta(0):
            try:
                await self.transport(timer.subject, SET_MESSAGES[kind].format(remaining=format_remaining(delay)))
            except Exception as e:
                log_message(f"Failed to confirm {kind} timer for {timer.subject}: {e}", "warning")
        return timer

    async def handle_event(self, subject, event, now=None):
        """
        Normalize a TimerEvent and arm its timer. Events that normalize to
        no advance are ignored.

        Returns:
            Timer | None: The armed timer, or None if the event was ignored.
        """
        target_time = normalize(event.duration, event.epoch_hint, now=now)
        if target_time is None:
            log_message(f"Ignoring {event.kind} event for {subject}: no duration in {event.duration!r}", "debug")
            return None
        return await self.set_timer(subject, event.kind, target_time, notify_on_set=event.notify)

    def status(self, subject, kind, now=None):
        return timer_status(self.store.get(subject, kind), now)

    def status_all(self, subject, now=None):
        """
        Return {kind: TimerStatus} for every timer kind of subject.
        """
        return {kind: self.status(subject, kind, now) for kind in TIMER_KINDS}

    async def stop(self):
        """
        Cancel pending retries. Persisted timers are untouched.
        """
        self.delivery.cancel_all()
