"""
VestingLedger - Main façade class

This is the primary interface to the vesting ledger. It owns the pool,
the grant registry, the journal and the collaborators, and exposes every
operation as a synchronous method that either commits fully or raises.

Example:
    >>> from linear_vesting import VestingLedger
    >>> ledger = VestingLedger("vesting.db")
    >>> ledger.initialize("Team", "0xtoken", start_time=1767225600,
    ...                   vesting_duration=31536000, admin="0xadmin")
    >>> ledger.add_grants(["0xalice", "0xbob"], [1000, 2000], caller="0xadmin")
    >>> ledger.calculate_claimable("0xalice")
    >>> ledger.claim("0xalice")
"""

import threading
from pathlib import Path
from typing import Any, Callable

from pydantic import ValidationError

from linear_vesting.kernel.access import Authorizer, Capability, RoleRegistry
from linear_vesting.kernel.bus import NotificationBus
from linear_vesting.kernel.custody import InMemoryCustody, TokenCustody
from linear_vesting.kernel.errors import (
    InvalidBatch,
    InvalidConfiguration,
    QueryBeforeLastClaim,
    VestingError,
)
from linear_vesting.kernel.event_store import SQLiteEventStore
from linear_vesting.kernel.events import Event
from linear_vesting.kernel.ids import generate_id
from linear_vesting.kernel.logging import LogOperation, get_logger
from linear_vesting.kernel.metrics import (
    grants_created_total,
    track_operation,
    units_claimed_total,
    units_granted_total,
)
from linear_vesting.kernel.policy import LedgerPolicy
from linear_vesting.kernel.time import RealTimeProvider, TimeProvider
from linear_vesting.vesting import calculator
from linear_vesting.vesting.commands import (
    AddGrants,
    ChangeAdmin,
    Claim,
    InitializePool,
    SetIssuer,
)
from linear_vesting.vesting.handlers import LEDGER_STREAM_ID, VestingCommandHandlers
from linear_vesting.vesting.invariants import validate_pool_exists
from linear_vesting.vesting.models import ClaimRecord, Grant, GrantSnapshot, Pool
from linear_vesting.vesting.projections import ClaimLog, GrantRegistry, PoolProjection

logger = get_logger(__name__)


class VestingLedger:
    """
    Linear vesting ledger façade

    Provides a unified API for:
    - Pool initialization
    - Atomic batch grant creation
    - Claimable / vested balance queries
    - Claims
    - Admin and issuer capability management

    All mutating operations and all multi-record reads are serialized by a
    single pool lock, so no caller ever observes a half-applied change.
    """

    def __init__(
        self,
        sqlite_path: str | Path,
        authorizer: Authorizer | None = None,
        custody: TokenCustody | None = None,
        time_provider: TimeProvider | None = None,
        policy: LedgerPolicy | None = None,
    ) -> None:
        """
        Initialize the ledger and rebuild state from the journal

        Args:
            sqlite_path: Path to SQLite journal
            authorizer: External capability system (in-memory RoleRegistry if None)
            custody: External transfer mechanism (empty InMemoryCustody if None)
            time_provider: Clock (system clock if None)
            policy: Ledger limits (defaults if None)
        """
        self.sqlite_path = Path(sqlite_path)
        self.policy = policy or LedgerPolicy()
        self.time_provider = time_provider or RealTimeProvider()
        self.custody = custody if custody is not None else InMemoryCustody()

        # Only a registry we created is rebuilt from the journal; an injected
        # authorizer keeps its own state.
        self._owns_authorizer = authorizer is None
        self.authorizer = authorizer if authorizer is not None else RoleRegistry()

        self.event_store = SQLiteEventStore(self.sqlite_path)
        self.handlers = VestingCommandHandlers(
            self.time_provider,
            self.policy,
            self.authorizer,
            self.custody,
            self.event_store,
        )
        self.bus = NotificationBus()

        self.pool_projection = PoolProjection()
        self.grant_registry = GrantRegistry()
        self.claim_log = ClaimLog()

        self._lock = threading.RLock()

        self._rebuild_projections()

    def _rebuild_projections(self) -> None:
        """Rebuild all projections from the journal"""
        for event in self.event_store.load_stream(LEDGER_STREAM_ID):
            self._apply(event)
            if self._owns_authorizer:
                self._replay_capabilities(event)

    def _replay_capabilities(self, event: Event) -> None:
        payload = event.payload
        if event.event_type == "PoolInitialized":
            self.authorizer.grant(payload["admin"], Capability.ADMIN)
            self.authorizer.grant(payload["admin"], Capability.ISSUE_GRANTS)
        elif event.event_type == "AdminChanged":
            self.authorizer.grant(payload["new_admin"], Capability.ADMIN)
            self.authorizer.revoke(payload["previous_admin"], Capability.ADMIN)
        elif event.event_type == "IssuerGranted":
            self.authorizer.grant(payload["account"], Capability.ISSUE_GRANTS)
        elif event.event_type == "IssuerRevoked":
            self.authorizer.revoke(payload["account"], Capability.ISSUE_GRANTS)

    def _apply(self, event: Event) -> None:
        self.pool_projection.apply_event(event)
        self.grant_registry.apply_event(event)
        self.claim_log.apply_event(event)

    def _run(
        self,
        operation: str,
        handler: Callable[[], list[Event]],
        **log_context: Any,
    ) -> list[Event]:
        """
        Execute one handler under the pool lock, then apply and publish

        Projections are updated before the lock is released; subscribers are
        notified after, so a slow subscriber never holds up the ledger.
        """
        with LogOperation(logger, operation, **log_context):
            try:
                with self._lock:
                    events = handler()
                    for event in events:
                        self._apply(event)
            except VestingError:
                track_operation(operation, succeeded=False)
                raise
            track_operation(operation, succeeded=True)

        self.bus.publish_events(events)
        return events

    # Pool operations

    def initialize(
        self,
        name: str,
        token: str,
        start_time: int,
        vesting_duration: int,
        admin: str,
    ) -> Pool:
        """
        Create the ledger's vesting pool

        Args:
            name: Display label
            token: Reference to the vested unit
            start_time: Unix second the window opens (must be in the future)
            vesting_duration: Window length in seconds
            admin: Account that receives the admin and issuance capabilities

        Returns:
            The new pool record

        Raises:
            PoolAlreadyInitialized: If a pool already exists
            InvalidConfiguration: On rejected parameters
        """
        try:
            command = InitializePool(
                name=name,
                token=token,
                start_time=start_time,
                vesting_duration=vesting_duration,
                admin=admin,
            )
        except ValidationError as e:
            raise InvalidConfiguration(f"Malformed pool parameters: {e}") from e

        self._run(
            "initialize_pool",
            lambda: self.handlers.handle_initialize_pool(
                command, generate_id(), admin, self.pool_projection
            ),
            pool_name=name,
        )
        return self.get_pool()

    def get_pool(self) -> Pool:
        """
        Snapshot of the pool record

        Raises:
            PoolNotInitialized: If no pool exists
        """
        with self._lock:
            return validate_pool_exists(self.pool_projection.get())

    def is_initialized(self) -> bool:
        with self._lock:
            return self.pool_projection.pool is not None

    # Grant operations

    def add_grants(
        self,
        recipients: list[str],
        amounts: list[int],
        caller: str,
    ) -> list[GrantSnapshot]:
        """
        Fund and create a batch of grants, all or nothing

        Args:
            recipients: Accounts to grant to (distinct, not yet granted)
            amounts: Positive amounts, one per recipient
            caller: Funding account; must hold ISSUE_GRANTS

        Returns:
            Snapshots of the new grants, in batch order

        Raises:
            Unauthorized: If caller lacks ISSUE_GRANTS
            InvalidBatch: On any malformed entry
            FundingFailure: If the aggregate funding transfer fails
        """
        try:
            command = AddGrants(recipients=list(recipients), amounts=list(amounts))
        except ValidationError as e:
            raise InvalidBatch(f"malformed batch input: {e.error_count()} errors") from e

        events = self._run(
            "add_grants",
            lambda: self.handlers.handle_add_grants(
                command,
                generate_id(),
                caller,
                self.pool_projection,
                self.grant_registry,
            ),
            caller=caller,
            batch_size=len(command.recipients),
        )

        batch_total = sum(event.payload["amount"] for event in events)
        grants_created_total.inc(len(events))
        units_granted_total.inc(batch_total)

        return [self.get_grant(event.payload["recipient"]) for event in events]

    def get_grant(self, recipient: str) -> GrantSnapshot:
        """
        Snapshot of a recipient's grant (all zeros if never granted)
        """
        grant = self._grant_or_empty(recipient)
        return GrantSnapshot(
            amount=grant.amount,
            total_claimed=grant.total_claimed,
            per_second_rate=grant.per_second_rate,
        )

    def has_grant(self, recipient: str) -> bool:
        with self._lock:
            return self.grant_registry.exists(recipient)

    def list_grants(self) -> list[Grant]:
        with self._lock:
            return self.grant_registry.list_all()

    def _grant_or_empty(self, recipient: str) -> Grant:
        with self._lock:
            return self.grant_registry.get(recipient) or Grant.empty(recipient)

    # Balance queries

    def calculate_claimable(self, recipient: str, now: int | None = None) -> int:
        """
        Units recipient could claim at now (current time if None)

        The grant's claimed total is only known as of today, so asking
        about a time before the recipient's last claim is refused.

        Raises:
            PoolNotInitialized: If no pool exists
            QueryBeforeLastClaim: If now precedes the last claim
        """
        with self._lock:
            pool = self.get_pool()
            grant = self._grant_or_empty(recipient)
            claims = self.claim_log.get_by_recipient(recipient)
        at = now if now is not None else self.time_provider.now()
        if claims and at < claims[-1].claimed_at:
            raise QueryBeforeLastClaim(recipient, at, claims[-1].claimed_at)
        return calculator.claimable(pool, grant, at)

    def vested_balance(self, recipient: str, now: int | None = None) -> int:
        """Units unlocked for recipient at now, claimed or not"""
        with self._lock:
            pool = self.get_pool()
            grant = self._grant_or_empty(recipient)
        at = now if now is not None else self.time_provider.now()
        return calculator.vested_balance(pool, grant, at)

    def claimed_balance(self, recipient: str) -> int:
        return self._grant_or_empty(recipient).total_claimed

    def tokens_vested_per_day(self, recipient: str) -> int:
        """
        Daily release of recipient's grant

        Raises:
            DegenerateDuration: If the window is shorter than one day
        """
        with self._lock:
            pool = self.get_pool()
            grant = self._grant_or_empty(recipient)
        return calculator.daily_rate(pool, grant.amount)

    def tokens_vested_per_day_for_amount(self, amount: int) -> int:
        """
        Daily release of an arbitrary amount over this pool's window

        Raises:
            DegenerateDuration: If the window is shorter than one day
        """
        return calculator.daily_rate(self.get_pool(), amount)

    # Claims

    def claim(self, caller: str) -> int:
        """
        Withdraw everything currently claimable for caller

        Returns:
            Units paid out

        Raises:
            NoClaimableAmount: If nothing is vested and unclaimed
            TransferFailure: If the payout transfer fails
        """
        events = self._run(
            "claim",
            lambda: self.handlers.handle_claim(
                Claim(),
                generate_id(),
                caller,
                self.pool_projection,
                self.grant_registry,
            ),
            caller=caller,
        )
        amount = events[0].payload["amount"]
        units_claimed_total.inc(amount)
        return amount

    def get_claim_history(self, recipient: str | None = None) -> list[ClaimRecord]:
        with self._lock:
            if recipient is None:
                return self.claim_log.get_all()
            return self.claim_log.get_by_recipient(recipient)

    # Administration

    def change_admin(self, new_admin: str, caller: str) -> None:
        """
        Transfer the admin capability from caller to new_admin

        Raises:
            Unauthorized: If caller is not an admin
            InvalidConfiguration: If new_admin is null or equals caller
        """
        command = ChangeAdmin(new_admin=new_admin)
        self._run(
            "change_admin",
            lambda: self.handlers.handle_change_admin(
                command, generate_id(), caller, self.pool_projection
            ),
            caller=caller,
            new_admin=new_admin,
        )

    def grant_issuer(self, account: str, caller: str) -> None:
        """Allow account to fund and create grants (caller must be admin)"""
        command = SetIssuer(account=account, enabled=True)
        self._run(
            "grant_issuer",
            lambda: self.handlers.handle_set_issuer(
                command, generate_id(), caller, self.pool_projection
            ),
            caller=caller,
            account=account,
        )

    def revoke_issuer(self, account: str, caller: str) -> None:
        """Stop account from funding and creating grants (caller must be admin)"""
        command = SetIssuer(account=account, enabled=False)
        self._run(
            "revoke_issuer",
            lambda: self.handlers.handle_set_issuer(
                command, generate_id(), caller, self.pool_projection
            ),
            caller=caller,
            account=account,
        )

    def is_authorized(self, account: str, capability: Capability | str) -> bool:
        return self.authorizer.authorize(account, Capability(capability))

    # Notifications

    def subscribe(self, event_type: str, handler: Callable[[Event], None]) -> None:
        """
        Receive committed events of event_type ("*" for all)

        Event types: PoolInitialized, GrantCreated, TokensClaimed,
        AdminChanged, IssuerGranted, IssuerRevoked
        """
        self.bus.subscribe(event_type, handler)
