"""Tests for the persisted timer store, due index and retry counters."""

from datetime import UTC, datetime, timedelta

import pytest

from database import Database
from scheduler.store import TimerStore

T = datetime(2026, 3, 14, 12, 0, 0, tzinfo=UTC)


def _count(db: Database, table: str) -> int:
    return db.fetchall(f"SELECT COUNT(*) FROM {table}")[0][0]


def _orphans(db: Database) -> int:
    records_without_index = db.fetchall(
        "SELECT COUNT(*) FROM timers t LEFT JOIN timer_index i "
        "ON t.subject = i.subject AND t.kind = i.kind WHERE i.seq IS NULL"
    )[0][0]
    index_without_record = db.fetchall(
        "SELECT COUNT(*) FROM timer_index i LEFT JOIN timers t "
        "ON t.subject = i.subject AND t.kind = i.kind WHERE t.subject IS NULL"
    )[0][0]
    return records_without_index + index_without_record


class TestSetAndGet:
    def test_round_trip(self, store: TimerStore):
        store.set("c1", "rescue", T, now=T - timedelta(hours=1))

        timer = store.get("c1", "rescue")
        assert timer is not None
        assert timer.target_time == T
        assert timer.set_at == T - timedelta(hours=1)
        assert timer.subject == "c1"
        assert timer.kind == "rescue"

    def test_round_trip_keeps_microseconds(self, store: TimerStore):
        target = T.replace(microsecond=123456)
        set_at = T - timedelta(microseconds=999)
        store.set("c1", "rescue", target, now=set_at)

        timer = store.get("c1", "rescue")
        assert timer.target_time == target
        assert timer.set_at == set_at
        assert store.clear("c1", "rescue", target_time=target) is True

    def test_get_absent(self, store: TimerStore):
        assert store.get("c1", "rescue") is None

    def test_subject_is_stored_as_text(self, store: TimerStore):
        store.set(123456789, "cardPull", T)
        assert store.get("123456789", "cardPull") is not None

    def test_supersede_leaves_one_timer(self, store: TimerStore, db: Database):
        t1 = T
        t2 = T + timedelta(hours=2)
        store.set("c1", "rescue", t1)
        store.set("c1", "rescue", t2)

        assert store.get("c1", "rescue").target_time == t2
        assert _count(db, "timers") == 1
        assert _count(db, "timer_index") == 1
        assert store.due_before(t1) == []
        assert store.due_before(t2) == [("c1", "rescue")]

    def test_kinds_are_independent(self, store: TimerStore):
        store.set("c1", "rescue", T)
        store.set("c1", "cardPull", T + timedelta(hours=1))

        assert store.get("c1", "rescue").target_time == T
        assert store.get("c1", "cardPull").target_time == T + timedelta(hours=1)

    def test_unknown_kind_rejected(self, store: TimerStore, db: Database):
        with pytest.raises(ValueError):
            store.set("c1", "fishing", T)
        assert _count(db, "timers") == 0


class TestClear:
    def test_clear_is_idempotent(self, store: TimerStore, db: Database):
        store.set("c1", "rescue", T)

        assert store.clear("c1", "rescue") is True
        assert store.clear("c1", "rescue") is False
        assert store.get("c1", "rescue") is None
        assert _count(db, "timers") == 0
        assert _count(db, "timer_index") == 0

    def test_conditional_clear_keeps_rearmed_timer(self, store: TimerStore):
        store.set("c1", "rescue", T + timedelta(hours=1))

        assert store.clear("c1", "rescue", target_time=T) is False
        assert store.get("c1", "rescue").target_time == T + timedelta(hours=1)

    def test_conditional_clear_matching_deadline(self, store: TimerStore, db: Database):
        store.set("c1", "rescue", T)

        assert store.clear("c1", "rescue", target_time=T) is True
        assert _count(db, "timer_index") == 0


class TestDueBefore:
    def test_ordered_and_bounded(self, store: TimerStore):
        store.set("late", "rescue", T - timedelta(minutes=1))
        store.set("early", "rescue", T - timedelta(minutes=10))
        store.set("exact", "cardPull", T)
        store.set("future", "rescue", T + timedelta(seconds=1))

        assert store.due_before(T) == [
            ("early", "rescue"),
            ("late", "rescue"),
            ("exact", "cardPull"),
        ]

    def test_ties_break_by_index_insertion(self, store: TimerStore):
        store.set("a", "rescue", T)
        store.set("b", "rescue", T)
        assert store.due_before(T) == [("a", "rescue"), ("b", "rescue")]

        # Re-arming moves the pair to the back of its deadline
        store.set("a", "rescue", T)
        assert store.due_before(T) == [("b", "rescue"), ("a", "rescue")]

    def test_sub_millisecond_boundary(self, store: TimerStore):
        store.set("c1", "rescue", T.replace(microsecond=1000))

        assert store.due_before(T.replace(microsecond=600)) == []
        assert store.due_before(T.replace(microsecond=999)) == []
        assert store.due_before(T.replace(microsecond=1000)) == [("c1", "rescue")]

    def test_empty(self, store: TimerStore):
        assert store.due_before(T) == []


class TestConsistency:
    def test_no_orphans_after_mixed_mutations(self, store: TimerStore, db: Database):
        for i in range(5):
            store.set(f"c{i}", "rescue", T + timedelta(minutes=i))
            store.set(f"c{i}", "cardPull", T)
        store.set("c1", "rescue", T - timedelta(minutes=5))
        store.clear("c2", "rescue")
        store.clear("c3", "cardPull", target_time=T)
        store.clear("c4", "cardPull", target_time=T + timedelta(days=1))

        assert _orphans(db) == 0
        assert _count(db, "timers") == 8

    def test_failed_transaction_rolls_back(self, db: Database):
        with pytest.raises(RuntimeError):
            with db.transaction() as cur:
                cur.execute(
                    "INSERT INTO timers (subject, kind, target_us, set_at_us) VALUES ('c1', 'rescue', 1, 1)"
                )
                raise RuntimeError("boom")

        assert _count(db, "timers") == 0

    def test_state_survives_reconnect(self, db_path: str):
        first = Database(db_path)
        TimerStore(first).set("c1", "rescue", T)
        first.close()

        second = Database(db_path)
        try:
            assert TimerStore(second).get("c1", "rescue").target_time == T
        finally:
            second.close()


class TestCorruptRecords:
    def test_corrupt_record_reads_as_absent_and_is_removed(self, store: TimerStore, db: Database):
        store.set("c1", "rescue", T)
        db.execute("UPDATE timers SET target_us = 'not-a-time' WHERE subject = 'c1'")

        assert store.get("c1", "rescue") is None
        assert _count(db, "timers") == 0
        assert _count(db, "timer_index") == 0

    def test_corrupt_record_heals_on_next_set(self, store: TimerStore, db: Database):
        store.set("c1", "rescue", T)
        db.execute("UPDATE timers SET set_at_us = 'garbage' WHERE subject = 'c1'")

        store.set("c1", "rescue", T + timedelta(minutes=5))
        assert store.get("c1", "rescue").target_time == T + timedelta(minutes=5)


class TestTimersFor:
    def test_lists_live_timers(self, store: TimerStore):
        store.set("c1", "rescue", T)
        store.set("c2", "cardPull", T)

        timers = store.timers_for("c1")
        assert list(timers) == ["rescue"]
        assert timers["rescue"].target_time == T


class TestRetryCounters:
    def test_defaults_to_zero(self, store: TimerStore):
        assert store.retry_count("c1", "rescue") == 0

    def test_increment_and_reset(self, store: TimerStore):
        ttl = timedelta(minutes=10)
        assert store.increment_retries("c1", "rescue", ttl) == 1
        assert store.increment_retries("c1", "rescue", ttl) == 2
        assert store.retry_count("c1", "rescue") == 2

        store.reset_retries("c1", "rescue")
        assert store.retry_count("c1", "rescue") == 0

    def test_counter_expires(self, store: TimerStore):
        ttl = timedelta(minutes=10)
        store.increment_retries("c1", "rescue", ttl, now=T)
        store.increment_retries("c1", "rescue", ttl, now=T)

        assert store.retry_count("c1", "rescue", now=T + timedelta(minutes=9)) == 2
        assert store.retry_count("c1", "rescue", now=T + timedelta(minutes=10)) == 0

    def test_increment_after_expiry_restarts(self, store: TimerStore):
        ttl = timedelta(minutes=10)
        store.increment_retries("c1", "rescue", ttl, now=T)
        store.increment_retries("c1", "rescue", ttl, now=T)

        assert store.increment_retries("c1", "rescue", ttl, now=T + timedelta(hours=1)) == 1

    def test_increment_refreshes_window(self, store: TimerStore):
        ttl = timedelta(minutes=10)
        store.increment_retries("c1", "rescue", ttl, now=T)
        store.increment_retries("c1", "rescue", ttl, now=T + timedelta(minutes=8))

        assert store.retry_count("c1", "rescue", now=T + timedelta(minutes=15)) == 2
