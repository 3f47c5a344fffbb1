"""
Tests for the VestingLedger façade - end-to-end behaviour

Covers the full lifecycle (initialize, fund, vest, claim), the all-or-nothing
guarantees, rebuild from the journal and concurrent claims.
"""

import threading
from typing import Callable

import pytest

from helpers import ADMIN, ALICE, BOB, CAROL, ISSUER, MALLORY, START, commit_failures
from linear_vesting import VestingLedger
from linear_vesting.kernel.access import Capability, RoleRegistry
from linear_vesting.kernel.custody import InMemoryCustody
from linear_vesting.kernel.errors import (
    DegenerateDuration,
    FundingFailure,
    InvalidBatch,
    InvalidConfiguration,
    LedgerInconsistency,
    NoClaimableAmount,
    PoolAlreadyInitialized,
    PoolNotInitialized,
    QueryBeforeLastClaim,
    TransferFailure,
    Unauthorized,
)
from linear_vesting.kernel.metrics import operations_total
from linear_vesting.kernel.time import TestTimeProvider
from linear_vesting.vesting.models import ZERO_ADDRESS, GrantSnapshot


class TestInitialize:
    def test_initialize_pool(self, ledger: VestingLedger) -> None:
        pool = ledger.initialize("Team", "0xtoken", START, 100, ADMIN)

        assert pool.end_time == START + 100
        assert pool.grant_count == 0
        assert ledger.is_initialized()
        assert ledger.is_authorized(ADMIN, Capability.ADMIN)
        assert ledger.is_authorized(ADMIN, "ISSUE_GRANTS")

    def test_only_once(self, pool_ledger: VestingLedger) -> None:
        with pytest.raises(PoolAlreadyInitialized):
            pool_ledger.initialize("Again", "0xtoken", START, 100, ADMIN)

    @pytest.mark.parametrize(
        ("start", "duration"),
        [(0, 100), (START, 0), (START - 1000, 100), (START - 2000, 100), (-1, 100)],
    )
    def test_rejected_parameters(
        self, ledger: VestingLedger, start: int, duration: int
    ) -> None:
        with pytest.raises(InvalidConfiguration):
            ledger.initialize("Team", "0xtoken", start, duration, ADMIN)
        assert not ledger.is_initialized()

    def test_sub_day_duration_accepted_by_default(self, ledger: VestingLedger) -> None:
        pool = ledger.initialize("Team", "0xtoken", START, 12 * 3600, ADMIN)
        assert pool.vesting_duration == 12 * 3600

    def test_strict_bounds_reject_sub_day_duration(
        self, make_ledger: Callable[..., VestingLedger]
    ) -> None:
        from linear_vesting.kernel.policy import LedgerPolicy

        ledger = make_ledger(policy=LedgerPolicy(strict_duration_bounds=True))
        with pytest.raises(InvalidConfiguration):
            ledger.initialize("Team", "0xtoken", START, 12 * 3600, ADMIN)

    def test_operations_need_pool(self, ledger: VestingLedger) -> None:
        with pytest.raises(PoolNotInitialized):
            ledger.get_pool()
        with pytest.raises(PoolNotInitialized):
            ledger.add_grants([ALICE], [100], caller=ADMIN)
        with pytest.raises(PoolNotInitialized):
            ledger.calculate_claimable(ALICE)


class TestAddGrants:
    def test_batch_totals(self, pool_ledger: VestingLedger) -> None:
        grants = pool_ledger.add_grants([ALICE, BOB, CAROL], [100, 200, 300], ADMIN)

        pool = pool_ledger.get_pool()
        assert pool.total_amount == 600
        assert pool.grant_count == 3
        assert [g.amount for g in grants] == [100, 200, 300]
        assert [g.per_second_rate for g in grants] == [1, 2, 3]

    def test_get_grant_unknown_recipient_is_zero(
        self, pool_ledger: VestingLedger
    ) -> None:
        assert pool_ledger.get_grant(MALLORY) == GrantSnapshot(
            amount=0, total_claimed=0, per_second_rate=0
        )
        assert not pool_ledger.has_grant(MALLORY)

    @pytest.mark.parametrize(
        ("recipients", "amounts"),
        [
            ([ALICE, ZERO_ADDRESS], [100, 100]),
            ([ALICE, BOB], [100, 0]),
            ([ALICE, BOB], [100]),
            ([ALICE, ALICE], [100, 100]),
            ([ALICE], [True]),
            ([ALICE], ["100"]),
            ([f"0x{i:040x}" for i in range(1, 102)], [1] * 101),
        ],
    )
    def test_invalid_batch_leaves_state_unchanged(
        self,
        pool_ledger: VestingLedger,
        custody: InMemoryCustody,
        recipients: list,
        amounts: list,
    ) -> None:
        before = pool_ledger.get_pool()
        balance = custody.balance_of(ADMIN)

        with pytest.raises(InvalidBatch):
            pool_ledger.add_grants(recipients, amounts, caller=ADMIN)

        assert pool_ledger.get_pool() == before
        assert pool_ledger.list_grants() == []
        assert custody.balance_of(ADMIN) == balance

    def test_duplicate_of_existing_grant(self, pool_ledger: VestingLedger) -> None:
        pool_ledger.add_grants([ALICE], [100], caller=ADMIN)

        with pytest.raises(InvalidBatch):
            pool_ledger.add_grants([BOB, ALICE], [100, 100], caller=ADMIN)

        assert not pool_ledger.has_grant(BOB)
        assert pool_ledger.get_pool().total_amount == 100

    def test_unauthorized_caller(self, pool_ledger: VestingLedger) -> None:
        with pytest.raises(Unauthorized):
            pool_ledger.add_grants([ALICE], [100], caller=MALLORY)

    def test_funding_failure(
        self, pool_ledger: VestingLedger, custody: InMemoryCustody
    ) -> None:
        pool_ledger.grant_issuer(MALLORY, caller=ADMIN)

        with pytest.raises(FundingFailure):
            pool_ledger.add_grants([ALICE], [100], caller=MALLORY)

        assert pool_ledger.get_pool().total_amount == 0
        assert not pool_ledger.has_grant(ALICE)

    def test_second_issuer(
        self, pool_ledger: VestingLedger, custody: InMemoryCustody
    ) -> None:
        pool_ledger.grant_issuer(ISSUER, caller=ADMIN)
        pool_ledger.add_grants([ALICE], [100], caller=ISSUER)
        assert custody.held == 100

        pool_ledger.revoke_issuer(ISSUER, caller=ADMIN)
        with pytest.raises(Unauthorized):
            pool_ledger.add_grants([BOB], [100], caller=ISSUER)


class TestVestingScenario:
    def test_claim_lifecycle(
        self,
        pool_ledger: VestingLedger,
        test_time: TestTimeProvider,
        custody: InMemoryCustody,
    ) -> None:
        """start T, duration 100, amount 1000: half at T+50, rest after end"""
        pool_ledger.add_grants([ALICE], [1000], caller=ADMIN)
        assert pool_ledger.get_grant(ALICE).per_second_rate == 10

        assert pool_ledger.calculate_claimable(ALICE) == 0
        assert pool_ledger.vested_balance(ALICE) == 0

        test_time.set_time(START + 50)
        assert pool_ledger.calculate_claimable(ALICE) == 500
        assert pool_ledger.claim(ALICE) == 500
        assert pool_ledger.claimed_balance(ALICE) == 500
        assert custody.balance_of(ALICE) == 500

        with pytest.raises(NoClaimableAmount):
            pool_ledger.claim(ALICE)

        test_time.set_time(START + 150)
        assert pool_ledger.calculate_claimable(ALICE) == 500
        assert pool_ledger.claim(ALICE) == 500

        pool = pool_ledger.get_pool()
        assert pool.total_claimed == 1000
        assert pool.total_unclaimed() == 0
        assert [c.amount for c in pool_ledger.get_claim_history(ALICE)] == [500, 500]

    def test_truncation_remainder_paid_at_end(
        self, pool_ledger: VestingLedger, test_time: TestTimeProvider
    ) -> None:
        pool_ledger.add_grants([ALICE], [1005], caller=ADMIN)

        test_time.set_time(START + 99)
        assert pool_ledger.claim(ALICE) == 990

        test_time.set_time(START + 100)
        assert pool_ledger.claim(ALICE) == 15
        assert pool_ledger.claimed_balance(ALICE) == 1005

    def test_vested_equals_claimed_plus_claimable(
        self, pool_ledger: VestingLedger, test_time: TestTimeProvider
    ) -> None:
        pool_ledger.add_grants([ALICE], [777], caller=ADMIN)

        for offset in (10, 33, 61, 99, 140):
            test_time.set_time(START + offset)
            if offset in (33, 99):
                pool_ledger.claim(ALICE)
            assert pool_ledger.vested_balance(ALICE) == (
                pool_ledger.claimed_balance(ALICE)
                + pool_ledger.calculate_claimable(ALICE)
            )

    def test_explicit_now(self, pool_ledger: VestingLedger) -> None:
        pool_ledger.add_grants([ALICE], [1000], caller=ADMIN)
        assert pool_ledger.calculate_claimable(ALICE, now=START + 25) == 250
        assert pool_ledger.vested_balance(ALICE, now=START + 1000) == 1000

    def test_claim_without_grant(
        self, pool_ledger: VestingLedger, test_time: TestTimeProvider
    ) -> None:
        test_time.set_time(START + 500)
        with pytest.raises(NoClaimableAmount):
            pool_ledger.claim(MALLORY)

    def test_transfer_failure_keeps_balance_claimable(
        self,
        pool_ledger: VestingLedger,
        test_time: TestTimeProvider,
        custody: InMemoryCustody,
    ) -> None:
        pool_ledger.add_grants([ALICE], [1000], caller=ADMIN)
        custody.held = 0
        test_time.set_time(START + 50)

        with pytest.raises(TransferFailure):
            pool_ledger.claim(ALICE)

        assert pool_ledger.claimed_balance(ALICE) == 0
        assert pool_ledger.calculate_claimable(ALICE) == 500

    def test_commit_failure_reverses_payout_and_keeps_balance(
        self,
        pool_ledger: VestingLedger,
        test_time: TestTimeProvider,
        custody: InMemoryCustody,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        pool_ledger.add_grants([ALICE], [1000], caller=ADMIN)
        test_time.set_time(START + 50)
        commit_failures(monkeypatch, pool_ledger.event_store)

        with pytest.raises(LedgerInconsistency):
            pool_ledger.claim(ALICE)

        assert custody.balance_of(ALICE) == 0
        assert pool_ledger.claimed_balance(ALICE) == 0
        assert pool_ledger.get_pool().total_claimed == 0

        monkeypatch.undo()
        assert pool_ledger.claim(ALICE) == 500
        assert custody.balance_of(ALICE) == 500

    def test_commit_failure_refunds_batch(
        self,
        pool_ledger: VestingLedger,
        custody: InMemoryCustody,
        monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        balance_before = custody.balance_of(ADMIN)
        commit_failures(monkeypatch, pool_ledger.event_store)

        with pytest.raises(LedgerInconsistency):
            pool_ledger.add_grants([ALICE, BOB], [1000, 2000], caller=ADMIN)

        assert custody.balance_of(ADMIN) == balance_before
        assert not pool_ledger.has_grant(ALICE)
        assert pool_ledger.get_pool().total_amount == 0

    def test_claimable_before_last_claim_rejected(
        self, pool_ledger: VestingLedger, test_time: TestTimeProvider
    ) -> None:
        pool_ledger.add_grants([ALICE], [1000], caller=ADMIN)
        test_time.set_time(START + 50)
        assert pool_ledger.claim(ALICE) == 500

        with pytest.raises(QueryBeforeLastClaim) as exc_info:
            pool_ledger.calculate_claimable(ALICE, now=START + 10)

        assert exc_info.value.last_claimed_at == START + 50
        assert pool_ledger.vested_balance(ALICE, now=START + 10) == 100
        assert pool_ledger.calculate_claimable(ALICE, now=START + 50) == 0
        assert pool_ledger.calculate_claimable(ALICE, now=START + 60) == 100
        assert pool_ledger.calculate_claimable(BOB, now=START + 10) == 0

    def test_null_caller_claim_is_rejected_and_counted(
        self, pool_ledger: VestingLedger, test_time: TestTimeProvider
    ) -> None:
        rejected = operations_total.labels(operation="claim", status="rejected")
        before = rejected._value.get()
        test_time.set_time(START + 50)

        with pytest.raises(NoClaimableAmount):
            pool_ledger.claim(None)

        assert rejected._value.get() == before + 1


class TestDailyRate:
    def test_per_day(self, ledger: VestingLedger) -> None:
        ledger.initialize("Team", "0xtoken", START, 10 * 86_400, ADMIN)
        ledger.add_grants([ALICE], [1000], caller=ADMIN)

        assert ledger.tokens_vested_per_day(ALICE) == 100
        assert ledger.tokens_vested_per_day(MALLORY) == 0
        assert ledger.tokens_vested_per_day_for_amount(5000) == 500

    def test_sub_day_window(self, ledger: VestingLedger) -> None:
        ledger.initialize("Team", "0xtoken", START, 12 * 3600, ADMIN)
        ledger.add_grants([ALICE], [1000], caller=ADMIN)

        with pytest.raises(DegenerateDuration):
            ledger.tokens_vested_per_day(ALICE)
        with pytest.raises(DegenerateDuration):
            ledger.tokens_vested_per_day_for_amount(1000)


class TestAdministration:
    def test_change_admin(self, pool_ledger: VestingLedger) -> None:
        pool_ledger.change_admin(BOB, caller=ADMIN)

        assert pool_ledger.get_pool().admin == BOB
        assert pool_ledger.is_authorized(BOB, Capability.ADMIN)
        assert not pool_ledger.is_authorized(ADMIN, Capability.ADMIN)

        with pytest.raises(Unauthorized):
            pool_ledger.change_admin(CAROL, caller=ADMIN)

    def test_change_admin_to_self_rejected(self, pool_ledger: VestingLedger) -> None:
        with pytest.raises(InvalidConfiguration):
            pool_ledger.change_admin(ADMIN, caller=ADMIN)
        assert pool_ledger.is_authorized(ADMIN, Capability.ADMIN)

    def test_issuer_management_requires_admin(
        self, pool_ledger: VestingLedger
    ) -> None:
        with pytest.raises(Unauthorized):
            pool_ledger.grant_issuer(MALLORY, caller=MALLORY)


class TestRebuild:
    def test_state_rebuilt_from_journal(
        self,
        make_ledger: Callable[..., VestingLedger],
        test_time: TestTimeProvider,
    ) -> None:
        first = make_ledger()
        first.initialize("Team", "0xtoken", START, 100, ADMIN)
        first.add_grants([ALICE, BOB], [1000, 500], caller=ADMIN)
        first.grant_issuer(ISSUER, caller=ADMIN)
        first.change_admin(CAROL, caller=ADMIN)
        test_time.set_time(START + 50)
        first.claim(ALICE)

        second = make_ledger()
        pool = second.get_pool()
        assert pool.total_amount == 1500
        assert pool.total_claimed == 500
        assert pool.grant_count == 2
        assert pool.admin == CAROL
        assert second.get_grant(ALICE).total_claimed == 500
        assert second.is_authorized(CAROL, Capability.ADMIN)
        assert not second.is_authorized(ADMIN, Capability.ADMIN)
        assert second.is_authorized(ISSUER, Capability.ISSUE_GRANTS)

        with pytest.raises(NoClaimableAmount):
            second.claim(ALICE)

    def test_injected_authorizer_not_replayed(
        self, make_ledger: Callable[..., VestingLedger]
    ) -> None:
        make_ledger().initialize("Team", "0xtoken", START, 100, ADMIN)

        external = RoleRegistry()
        reopened = make_ledger(authorizer=external)

        assert reopened.get_pool().admin == ADMIN
        assert not external.authorize(ADMIN, Capability.ADMIN)


class TestNotifications:
    def test_subscribers_see_committed_events(
        self, pool_ledger: VestingLedger, test_time: TestTimeProvider
    ) -> None:
        seen = []
        everything = []
        pool_ledger.subscribe("GrantCreated", lambda e: seen.append(e.payload["recipient"]))
        pool_ledger.subscribe("*", lambda e: everything.append(e.event_type))

        pool_ledger.add_grants([ALICE, BOB], [100, 200], caller=ADMIN)
        test_time.set_time(START + 100)
        pool_ledger.claim(ALICE)

        assert seen == [ALICE, BOB]
        assert everything == ["GrantCreated", "GrantCreated", "TokensClaimed"]

    def test_rejected_operation_publishes_nothing(
        self, pool_ledger: VestingLedger
    ) -> None:
        seen = []
        pool_ledger.subscribe("*", seen.append)

        with pytest.raises(InvalidBatch):
            pool_ledger.add_grants([ALICE], [0], caller=ADMIN)

        assert seen == []

    def test_failing_subscriber_does_not_undo_commit(
        self, pool_ledger: VestingLedger
    ) -> None:
        def broken(event):
            raise RuntimeError("subscriber bug")

        pool_ledger.subscribe("GrantCreated", broken)
        pool_ledger.add_grants([ALICE], [100], caller=ADMIN)

        assert pool_ledger.has_grant(ALICE)


class TestConcurrency:
    def test_concurrent_claims_pay_each_recipient_once(
        self, pool_ledger: VestingLedger, test_time: TestTimeProvider
    ) -> None:
        recipients = [f"0x{i:040x}" for i in range(1, 21)]
        pool_ledger.add_grants(recipients, [1000] * 20, caller=ADMIN)
        test_time.set_time(START + 100)

        paid = []
        rejected = []
        lock = threading.Lock()

        def claim_twice(recipient: str) -> None:
            for _ in range(2):
                try:
                    amount = pool_ledger.claim(recipient)
                except NoClaimableAmount:
                    with lock:
                        rejected.append(recipient)
                else:
                    with lock:
                        paid.append(amount)

        threads = [
            threading.Thread(target=claim_twice, args=(r,)) for r in recipients
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sum(paid) == 20_000
        assert len(rejected) == 20
        assert pool_ledger.get_pool().total_claimed == 20_000
