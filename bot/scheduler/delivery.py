"""
Module: bot/scheduler/delivery.py

Defines DeliveryManager: sends a ready notification through the injected
transport and applies the bounded retry policy.

Per (subject, kind) the delivery moves through
    PENDING -> RETRYING(n) -> DELIVERED | EXHAUSTED
Retries run as fire-and-forget tasks after a fixed backoff. While one is
pending the pair is in flight and the scheduler loop leaves it alone.
Only unfinished deliveries are kept in memory.
"""
import asyncio
from enum import Enum
from config import MAX_DELIVERY_ATTEMPTS, RETRY_BACKOFF, RETRY_COUNTER_TTL
from scheduler.errors import PermanentDeliveryError
from utils import log_message, utcnow

class DeliveryState(Enum):
    PENDING = "pending"
    RETRYING = "retrying"
    DELIVERED = "delivered"
    EXHAUSTED = "exhausted"


class DeliveryManager:
    """
    Delivers notifications for due timers with bounded, constant-backoff retry.

    Attributes:
      store: TimerStore owning timers and retry counters.
      transport: Async callable (subject, message) that raises on failure.
      max_attempts (int): Retries allowed after the first failed send.
      retry_backoff (timedelta): Delay before each retry.
      counter_ttl (timedelta): Validity window of a retry counter.
      sleep: Awaitable sleep function, injectable for tests.
    """
    def __init__(
        self,
        store,
        transport,
        max_attempts=MAX_DELIVERY_ATTEMPTS,
        retry_backoff=RETRY_BACKOFF,
        counter_ttl=RETRY_COUNTER_TTL,
        sleep=asyncio.sleep
    ):
        self.store = store
        self.transport = transport
        self.max_attempts = max_attempts
        self.retry_backoff = retry_backoff
        self.counter_ttl = counter_ttl
        self.sleep = sleep
        self.states = {}
        self._retries = {}

    def is_in_flight(self, subject, kind):
        return (str(subject), kind) in self._retries

    def state(self, subject, kind):
        """
        Current state of an unfinished delivery, or None once the pair has
        reached DELIVERED or EXHAUSTED (or was never attempted).
        """
        return self.states.get((str(subject), kind))

    async def deliver(self, timer, message):
        """
        Attempt one delivery of message for timer.

        Returns:
            bool: True if the transport accepted the message. The caller then
            clears the timer. False means a retry is pending or the timer was
            dropped.
        """
        state = await self.attempt(timer, message)
        return state is DeliveryState.DELIVERED

    async def attempt(self, timer, message):
        """
        Attempt one delivery and return the resulting DeliveryState.

        Only PENDING and RETRYING pairs are tracked in states; a terminal
        outcome is returned and the entry is dropped.
        """
        key = timer.key
        self.states.setdefault(key, DeliveryState.PENDING)
        state = DeliveryState.PENDING
        try:
            state = await self._send(timer, message)
        finally:
            # A retry task owning this key drops the entry when it finishes
            if state is not DeliveryState.RETRYING and key not in self._retries:
                self.states.pop(key, None)
        return state

    async def _send(self, timer, message):
        key = timer.key
        try:
            await self.transport(timer.subject, message)
        except PermanentDeliveryError as e:
            log_message(
                f"Permanent delivery failure for {timer.subject}/{timer.kind}, dropping timer: {e}",
                "error"
            )
            return self._exhaust(timer)
        except Exception as e:
            attempts = self.store.retry_count(timer.subject, timer.kind)
            if attempts >= self.max_attempts:
                log_message(
                    f"Delivery for {timer.subject}/{timer.kind} failed after {attempts} retries, dropping timer: {e}",
                    "error"
                )
                return self._exhaust(timer)

            attempts = self.store.increment_retries(timer.subject, timer.kind, self.counter_ttl)
            log_message(
                f"Delivery for {timer.subject}/{timer.kind} failed ({e}); "
                f"retry {attempts}/{self.max_attempts} in {self.retry_backoff.total_seconds():g}s",
                "warning"
            )
            self.states[key] = DeliveryState.RETRYING
            self._retries[key] = asyncio.create_task(self._retry(timer, message))
            return DeliveryState.RETRYING

        self.store.reset_retries(timer.subject, timer.kind)
        log_message(f"Delivered {timer.kind} notification to {timer.subject}", "info")
        return DeliveryState.DELIVERED

    def _exhaust(self, timer):
        self.store.clear(timer.subject, timer.kind, target_time=timer.target_time)
        self.store.reset_retries(timer.subject, timer.kind)
        return DeliveryState.EXHAUSTED

    async def _retry(self, timer, message):
        key = timer.key
        try:
            await self.sleep(self.retry_backoff.total_seconds())
            live = self.store.get(timer.subject, timer.kind)
            if live is None or live.target_time > utcnow():
                log_message(f"Dropping retry for {timer.subject}/{timer.kind}: timer cleared or re-armed", "debug")
                return
            state = await self.attempt(live, message)
            if state is DeliveryState.DELIVERED:
                self.store.clear(live.subject, live.kind, target_time=live.target_time)
        except Exception as e:
            log_message(f"Error retrying delivery for {timer.subject}/{timer.kind}: {e}", "error")
        finally:
            if self._retries.get(key) is asyncio.current_task():
                del self._retries[key]
                self.states.pop(key, None)

    async def join(self):
        """
        Wait until no retry is pending, including retries scheduled by retries.
        """
        while self._retries:
            await asyncio.gather(*list(self._retries.values()), return_exceptions=True)

    def cancel_all(self):
        """
        Cancel pending retries. Timers stay persisted and are picked up again
        by the next recovery pass.
        """
        for key, task in self._retries.items():
            task.cancel()
            self.states.pop(key, None)
        self._retries.clear()
