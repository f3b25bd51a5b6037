"""
Tests for the sweep scheduler and advisory lock helpers.
"""
from unittest.mock import MagicMock

import pytest
from apscheduler.triggers.interval import IntervalTrigger

from marketplace.jobs import sweeps
from marketplace.jobs.scheduler import (
    SchedulerManager,
    advisory_lock,
    get_lock_key,
    get_scheduler,
    release_lock,
    try_acquire_lock,
)


def postgres_engine(lock_result=True):
    engine = MagicMock()
    engine.dialect.name = "postgresql"
    conn = engine.connect.return_value.__enter__.return_value
    conn.execute.return_value.scalar.return_value = lock_result
    return engine, conn


@pytest.mark.unit
def test_get_lock_key_consistent():
    key1 = get_lock_key("auto_complete")
    key2 = get_lock_key("auto_complete")

    assert key1 == key2
    assert isinstance(key1, int)
    assert 0 <= key1 < 2**63


@pytest.mark.unit
def test_get_lock_key_unique():
    assert get_lock_key("reminders") != get_lock_key("payment_expiry")


@pytest.mark.unit
def test_try_acquire_lock_on_postgres():
    _, conn = postgres_engine(lock_result=True)
    assert try_acquire_lock(conn, 12345) is True
    conn.execute.assert_called_once()
    conn.commit.assert_called_once()


@pytest.mark.unit
def test_try_acquire_lock_held_elsewhere():
    _, conn = postgres_engine(lock_result=False)
    assert try_acquire_lock(conn, 12345) is False


@pytest.mark.unit
def test_release_lock_on_postgres():
    _, conn = postgres_engine()
    release_lock(conn, 777)
    assert "pg_advisory_unlock" in str(conn.execute.call_args.args[0])


@pytest.mark.unit
def test_lock_and_unlock_share_one_connection():
    engine, conn = postgres_engine(lock_result=True)

    with advisory_lock(engine, 42) as acquired:
        assert acquired is True
        engine.connect.assert_called_once()

    statements = [str(call.args[0]) for call in conn.execute.call_args_list]
    assert len(statements) == 2
    assert "pg_try_advisory_lock" in statements[0]
    assert "pg_advisory_unlock" in statements[1]
    engine.connect.assert_called_once()


@pytest.mark.unit
def test_lock_released_when_block_raises():
    engine, conn = postgres_engine(lock_result=True)

    with pytest.raises(RuntimeError):
        with advisory_lock(engine, 42):
            raise RuntimeError("sweep failed")

    assert "pg_advisory_unlock" in str(conn.execute.call_args.args[0])


@pytest.mark.unit
def test_lock_held_elsewhere_is_not_released():
    engine, conn = postgres_engine(lock_result=False)

    with advisory_lock(engine, 42) as acquired:
        assert acquired is False

    conn.execute.assert_called_once()


@pytest.mark.unit
def test_advisory_lock_noop_without_postgres():
    engine = MagicMock()
    engine.dialect.name = "sqlite"

    with advisory_lock(engine, 1) as acquired:
        assert acquired is True
    engine.connect.assert_not_called()


@pytest.mark.unit
def test_add_interval_job_requires_interval():
    manager = SchedulerManager()
    with pytest.raises(ValueError):
        manager.add_interval_job(lambda: None, "nothing")


@pytest.mark.unit
def test_register_sweeps_without_payment_hold(monkeypatch):
    monkeypatch.setattr(sweeps.settings, "payment_hold_minutes", 0)
    manager = SchedulerManager()

    sweeps.register_sweeps(manager)

    job_ids = {job.id for job in manager.get_jobs()}
    assert job_ids == {"auto_complete", "reminders", "outbox_redelivery"}
    assert all(isinstance(job.trigger, IntervalTrigger) for job in manager.get_jobs())


@pytest.mark.unit
def test_register_sweeps_with_payment_hold(monkeypatch):
    monkeypatch.setattr(sweeps.settings, "payment_hold_minutes", 30)
    manager = SchedulerManager()

    sweeps.register_sweeps(manager)

    assert "payment_expiry" in {job.id for job in manager.get_jobs()}


@pytest.mark.unit
def test_get_scheduler_singleton():
    assert get_scheduler() is get_scheduler()
    assert not get_scheduler().running
