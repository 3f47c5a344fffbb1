"""
Test Helper Functions - Constants and builders

Shared accounts and a pool window used across the suite, plus builders for
journal events. commit_failures makes the journal's COMMIT fail on demand.
"""

import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Iterator

import pytest

from linear_vesting.kernel.event_store import SQLiteEventStore
from linear_vesting.kernel.events import Event
from linear_vesting.kernel.ids import generate_id
from linear_vesting.vesting.models import Grant, Pool

# 2026-01-01 00:00:00 UTC
START = 1_767_225_600
ONE_YEAR = 365 * 86_400

ADMIN = "0xadmin"
ISSUER = "0xissuer"
ALICE = "0xalice"
BOB = "0xbob"
CAROL = "0xcarol"
MALLORY = "0xmallory"


def make_pool(
    start_time: int = START,
    vesting_duration: int = 100,
    total_amount: int = 0,
    total_claimed: int = 0,
) -> Pool:
    """Builder for a pool record (bypasses the journal)"""
    return Pool(
        name="Test pool",
        token="0xtoken",
        admin=ADMIN,
        start_time=start_time,
        end_time=start_time + vesting_duration,
        vesting_duration=vesting_duration,
        total_amount=total_amount,
        total_claimed=total_claimed,
    )


def make_grant(
    pool: Pool,
    amount: int,
    recipient: str = ALICE,
    total_claimed: int = 0,
) -> Grant:
    """Builder for a grant whose rate is derived from the pool window"""
    return Grant(
        recipient=recipient,
        amount=amount,
        total_claimed=total_claimed,
        per_second_rate=amount // pool.vesting_duration,
    )


def make_event(
    event_type: str,
    payload: dict[str, Any],
    version: int,
    stream_id: str = "vesting-pool",
    command_id: str | None = None,
) -> Event:
    """Builder for journal events"""
    return Event(
        event_id=generate_id(),
        stream_id=stream_id,
        stream_type="pool",
        event_type=event_type,
        occurred_at=datetime.now(timezone.utc),
        actor_id=ADMIN,
        command_id=command_id or generate_id(),
        payload=payload,
        version=version,
    )


class _CommitFailingConnection:
    """sqlite3 connection whose COMMIT fails as if the disk had gone away"""

    def __init__(self, conn: sqlite3.Connection) -> None:
        self._conn = conn

    def execute(self, sql: str, *args: Any) -> sqlite3.Cursor:
        if sql.strip().upper() == "COMMIT":
            raise sqlite3.OperationalError("disk I/O error")
        return self._conn.execute(sql, *args)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._conn, name)


def commit_failures(monkeypatch: pytest.MonkeyPatch, store: SQLiteEventStore) -> None:
    """Make every COMMIT on store fail until monkeypatch is undone"""
    connect = store._connect

    @contextmanager
    def failing_connect(autocommit: bool = False) -> Iterator[Any]:
        with connect(autocommit=autocommit) as conn:
            yield _CommitFailingConnection(conn)

    monkeypatch.setattr(store, "_connect", failing_connect)
