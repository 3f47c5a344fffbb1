"""
Pytest configuration and shared fixtures

The clock starts 1000 seconds before the pool window opens, because a pool
can only be initialized with a start time in the future. Tests move the
clock forward with advance_seconds / set_time.
"""

import tempfile
from pathlib import Path
from typing import Callable, Iterator

import pytest
import structlog

from helpers import ADMIN, ISSUER, START
from linear_vesting.kernel.access import RoleRegistry
from linear_vesting.kernel.custody import InMemoryCustody
from linear_vesting.kernel.event_store import SQLiteEventStore
from linear_vesting.kernel.policy import LedgerPolicy
from linear_vesting.kernel.time import TestTimeProvider
from linear_vesting.ledger import VestingLedger


@pytest.fixture(autouse=True)
def uncached_loggers() -> None:
    """Module loggers must stay rebindable so capture_logs sees their output"""
    structlog.configure(cache_logger_on_first_use=False)


@pytest.fixture
def temp_db() -> Iterator[Path]:
    """Provide a temporary database file that's cleaned up after test"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir) / "vesting.db"


@pytest.fixture
def event_store(temp_db: Path) -> SQLiteEventStore:
    """Provide a fresh event store for each test"""
    return SQLiteEventStore(temp_db)


@pytest.fixture
def test_time() -> TestTimeProvider:
    """Provide a controllable clock set before the default pool start"""
    return TestTimeProvider(START - 1000)


@pytest.fixture
def policy() -> LedgerPolicy:
    return LedgerPolicy()


@pytest.fixture
def roles() -> RoleRegistry:
    return RoleRegistry()


@pytest.fixture
def custody() -> InMemoryCustody:
    """
    Provide custody where the admin and a second issuer hold funds

    Balances are large enough for every batch in the suite.
    """
    return InMemoryCustody({ADMIN: 10**30, ISSUER: 10**30})


@pytest.fixture
def make_ledger(
    temp_db: Path,
    test_time: TestTimeProvider,
    custody: InMemoryCustody,
    policy: LedgerPolicy,
) -> Callable[..., VestingLedger]:
    """
    Factory for ledgers sharing the test database, clock and custody

    Calling it twice reopens the same journal, which is how rebuild tests
    simulate a restart.
    """

    def factory(**overrides) -> VestingLedger:
        kwargs = {
            "time_provider": test_time,
            "custody": custody,
            "policy": policy,
        }
        kwargs.update(overrides)
        return VestingLedger(temp_db, **kwargs)

    return factory


@pytest.fixture
def ledger(make_ledger: Callable[..., VestingLedger]) -> VestingLedger:
    """Provide an uninitialized ledger"""
    return make_ledger()


@pytest.fixture
def pool_ledger(ledger: VestingLedger) -> VestingLedger:
    """Provide a ledger with a 100-second pool starting at START"""
    ledger.initialize(
        name="Test pool",
        token="0xtoken",
        start_time=START,
        vesting_duration=100,
        admin=ADMIN,
    )
    return ledger
