"""
Module: bot/scheduler/store.py

Defines TimerStore: the single owner of persisted timers, the due-timer index,
and per-timer retry counters. Every paired mutation of a timer record and its
index entry runs inside one database transaction.
"""
from scheduler.timer import Timer, TIMER_KINDS
from utils import log_message, utcnow, to_epoch_us, from_epoch_us, ONE_MICROSECOND

class TimerStore:
    """
    Persisted key-value store of one timer per (subject, kind) plus a
    time-ordered index for due-timer lookup.

    Tables:
      timers(subject, kind, target_us, set_at_us)
      timer_index(seq, target_us, subject, kind) -- seq breaks ties in insertion order
      retry_counters(subject, kind, attempts, expires_us)
    """
    def __init__(self, db):
        """
        Args:
            db: Database wrapper instance.
        """
        self.db = db

    def set(self, subject, kind, target_time, now=None):
        """
        Create or re-arm the timer for (subject, kind).

        The stale index entry of a superseded timer is removed and the new one
        inserted in the same transaction as the record upsert.

        Returns:
            Timer: The stored timer.
        """
        if kind not in TIMER_KINDS:
            raise ValueError(f"Unknown timer kind: {kind!r}")
        subject = str(subject)
        set_at = now or utcnow()
        target_us = to_epoch_us(target_time)
        set_at_us = to_epoch_us(set_at)

        with self.db.transaction() as cur:
            cur.execute(
                '''
                INSERT INTO timers (subject, kind, target_us, set_at_us)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (subject, kind) DO UPDATE SET
                  target_us = excluded.target_us,
                  set_at_us = excluded.set_at_us
                ''',
                (subject, kind, target_us, set_at_us)
            )
            cur.execute(
                'DELETE FROM timer_index WHERE subject = ? AND kind = ?',
                (subject, kind)
            )
            cur.execute(
                'INSERT INTO timer_index (target_us, subject, kind) VALUES (?, ?, ?)',
                (target_us, subject, kind)
            )

        return Timer(subject, kind, from_epoch_us(target_us), from_epoch_us(set_at_us))

    def get(self, subject, kind):
        """
        Fetch the live timer for (subject, kind), or None.

        A record that does not hold integer timestamps is corrupt: it is
        removed together with its index entry and reported as absent.
        """
        subject = str(subject)
        rows = self.db.fetchall(
            'SELECT target_us, set_at_us FROM timers WHERE subject = ? AND kind = ?',
            (subject, kind)
        )
        if not rows:
            return None

        target_us, set_at_us = rows[0]
        try:
            return Timer(subject, kind, from_epoch_us(target_us), from_epoch_us(set_at_us))
        except (TypeError, ValueError, OverflowError, OSError) as e:
            log_message(f"Discarding corrupt timer record {subject}/{kind}: {e}", "warning")
            self._delete(subject, kind)
            return None

    def clear(self, subject, kind, target_time=None):
        """
        Remove the timer and its index entry. Clearing an absent timer is a no-op.

        Args:
            target_time (datetime, optional): Only clear if the live timer still
                fires at this instant; a timer re-armed in the meantime is kept.

        Returns:
            bool: True if a record was removed.
        """
        subject = str(subject)
        if target_time is None:
            return self._delete(subject, kind)

        target_us = to_epoch_us(target_time)
        with self.db.transaction() as cur:
            cur.execute(
                'DELETE FROM timers WHERE subject = ? AND kind = ? AND target_us = ?',
                (subject, kind, target_us)
            )
            removed = cur.rowcount > 0
            if removed:
                cur.execute(
                    'DELETE FROM timer_index WHERE subject = ? AND kind = ?',
                    (subject, kind)
                )
        return removed

    def due_before(self, instant):
        """
        Snapshot every (subject, kind) whose target time is at or before instant,
        earliest deadline first, ties in index insertion order.
        """
        rows = self.db.fetchall(
            '''
            SELECT subject, kind FROM timer_index
            WHERE target_us <= ?
            ORDER BY target_us, seq
            ''',
            (to_epoch_us(instant),)
        )
        return [(subject, kind) for subject, kind in rows]

    def timers_for(self, subject):
        """
        Return {kind: Timer} for every live timer of subject.
        """
        timers = {}
        for kind in TIMER_KINDS:
            timer = self.get(subject, kind)
            if timer:
                timers[kind] = timer
        return timers

    # Retry counters

    def retry_count(self, subject, kind, now=None):
        """
        Current consecutive-failure count; 0 when absent or expired.
        """
        rows = self.db.fetchall(
            'SELECT attempts, expires_us FROM retry_counters WHERE subject = ? AND kind = ?',
            (str(subject), kind)
        )
        if not rows:
            return 0
        attempts, expires_us = rows[0]
        if not isinstance(attempts, int) or not isinstance(expires_us, int):
            log_message(f"Ignoring corrupt retry counter {subject}/{kind}", "warning")
            return 0
        if expires_us <= to_epoch_us(now or utcnow()):
            return 0
        return attempts

    def increment_retries(self, subject, kind, ttl, now=None):
        """
        Add one failure and push the counter's expiry to now + ttl.

        An expired counter restarts from zero. Returns the new count.
        """
        subject = str(subject)
        now_us = to_epoch_us(now or utcnow())
        expires_us = now_us + ttl // ONE_MICROSECOND

        with self.db.transaction() as cur:
            row = cur.execute(
                'SELECT attempts, expires_us FROM retry_counters WHERE subject = ? AND kind = ?',
                (subject, kind)
            ).fetchone()
            attempts = 0
            if row and isinstance(row[0], int) and isinstance(row[1], int) and row[1] > now_us:
                attempts = row[0]
            attempts += 1
            cur.execute(
                '''
                INSERT INTO retry_counters (subject, kind, attempts, expires_us)
                VALUES (?, ?, ?, ?)
                ON CONFLICT (subject, kind) DO UPDATE SET
                  attempts = excluded.attempts,
                  expires_us = excluded.expires_us
                ''',
                (subject, kind, attempts, expires_us)
            )
        return attempts

    def reset_retries(self, subject, kind):
        self.db.execute(
            'DELETE FROM retry_counters WHERE subject = ? AND kind = ?',
            (str(subject), kind)
        )

    def _delete(self, subject, kind):
        with self.db.transaction() as cur:
            cur.execute(
                'DELETE FROM timers WHERE subject = ? AND kind = ?',
                (subject, kind)
            )
            removed = cur.rowcount > 0
            cur.execute(
                'DELETE FROM timer_index WHERE subject = ? AND kind = ?',
                (subject, kind)
            )
        return removed
