"""
Vesting Handlers - Command→Event transformation with custody settlement

Handlers are the decision-making layer. They:
1. Read current state (from projections)
2. Validate every precondition
3. Build the events the command produces
4. Stage the events, settle with custody, and commit both together

Funding (add_grants) and payout (claim) run their custody transfer inside
the journal's staged append: a refused transfer rolls the staged events
back, so the ledger never records a transfer that did not happen. If the
commit itself fails after the transfer went through, the transfer is sent
back the other way and the call fails with LedgerInconsistency.
"""

from typing import Callable, NoReturn

from linear_vesting.kernel.access import Authorizer, Capability
from linear_vesting.kernel.custody import TokenCustody
from linear_vesting.kernel.errors import (
    FundingFailure,
    InvalidConfiguration,
    JournalCommitFailed,
    LedgerInconsistency,
    NoClaimableAmount,
    TransferFailure,
)
from linear_vesting.kernel.event_store import SQLiteEventStore
from linear_vesting.kernel.events import Event, create_event
from linear_vesting.kernel.ids import generate_id
from linear_vesting.kernel.logging import get_logger
from linear_vesting.kernel.policy import LedgerPolicy
from linear_vesting.kernel.safemath import checked_add, checked_sum
from linear_vesting.kernel.time import TimeProvider, to_datetime
from linear_vesting.vesting import calculator
from linear_vesting.vesting.commands import (
    AddGrants,
    ChangeAdmin,
    Claim,
    InitializePool,
    SetIssuer,
)
from linear_vesting.vesting.events import (
    AdminChanged,
    GrantCreated,
    IssuerGranted,
    IssuerRevoked,
    PoolInitialized,
    TokensClaimed,
)
from linear_vesting.vesting.invariants import (
    validate_capability,
    validate_grant_batch,
    validate_new_admin,
    validate_pool_absent,
    validate_pool_config,
    validate_pool_exists,
)
from linear_vesting.vesting.models import Grant, is_null_identity
from linear_vesting.vesting.projections import GrantRegistry, PoolProjection

logger = get_logger(__name__)

LEDGER_STREAM_ID = "vesting-pool"
LEDGER_STREAM_TYPE = "pool"


class VestingCommandHandlers:
    """
    Command handlers for the vesting ledger

    Authorization and custody are injected collaborators; the handlers only
    consult them. Callers are responsible for serializing handler calls
    that touch the same stream (the façade's pool lock).
    """

    def __init__(
        self,
        time_provider: TimeProvider,
        policy: LedgerPolicy,
        authorizer: Authorizer,
        custody: TokenCustody,
        event_store: SQLiteEventStore,
    ) -> None:
        self.time_provider = time_provider
        self.policy = policy
        self.authorizer = authorizer
        self.custody = custody
        self.event_store = event_store

    def _build_event(
        self,
        event_type: str,
        payload: dict,
        command_id: str,
        actor_id: str | None,
        version: int,
        now: int,
    ) -> Event:
        return create_event(
            event_id=generate_id(),
            stream_id=LEDGER_STREAM_ID,
            stream_type=LEDGER_STREAM_TYPE,
            event_type=event_type,
            occurred_at=to_datetime(now),
            command_id=command_id,
            actor_id=actor_id,
            payload=payload,
            version=version,
        )

    def _reverse_transfer(
        self,
        error: JournalCommitFailed,
        direction: str,
        account: str,
        amount: int,
        reverse: Callable[[str, int], bool],
    ) -> NoReturn:
        """
        Undo a custody transfer whose journal entry failed to commit

        Always raises LedgerInconsistency. If the reversal is refused too,
        custody and journal now disagree and need manual reconciliation.
        """
        reversed_ok = reverse(account, amount)
        logger.error(
            "Journal commit failed after custody transfer",
            direction=direction,
            account=account,
            amount=amount,
            reversed=reversed_ok,
            error=str(error),
        )
        if reversed_ok:
            raise LedgerInconsistency(
                f"Journal commit failed after {direction} of {amount} units "
                f"for {account}; the transfer was reversed"
            ) from error
        raise LedgerInconsistency(
            f"Journal commit failed after {direction} of {amount} units "
            f"for {account} and the reversal was refused"
        ) from error

    def handle_initialize_pool(
        self,
        command: InitializePool,
        command_id: str,
        actor_id: str | None,
        pool_projection: PoolProjection,
    ) -> list[Event]:
        """
        Handle InitializePool command

        Validates:
        - No pool exists
        - start_time non-zero and strictly after now
        - vesting_duration non-zero and passes the bound check

        Raises:
            PoolAlreadyInitialized: If the ledger already has a pool
            InvalidConfiguration: On rejected parameters
        """
        now = self.time_provider.now()

        validate_pool_absent(pool_projection.pool)
        validate_pool_config(
            name=command.name,
            admin=command.admin,
            start_time=command.start_time,
            vesting_duration=command.vesting_duration,
            now=now,
            policy=self.policy,
        )

        end_time = checked_add(command.start_time, command.vesting_duration)

        payload = PoolInitialized(
            name=command.name,
            token=command.token,
            admin=command.admin,
            start_time=command.start_time,
            end_time=end_time,
            vesting_duration=command.vesting_duration,
            initialized_at=now,
        ).model_dump(mode="json")

        event = self._build_event(
            "PoolInitialized",
            payload,
            command_id,
            actor_id,
            pool_projection.version + 1,
            now,
        )
        try:
            with self.event_store.staged_append(
                LEDGER_STREAM_ID, pool_projection.version, [event]
            ):
                self.authorizer.grant(command.admin, Capability.ADMIN)
                self.authorizer.grant(command.admin, Capability.ISSUE_GRANTS)
        except JournalCommitFailed:
            self.authorizer.revoke(command.admin, Capability.ISSUE_GRANTS)
            self.authorizer.revoke(command.admin, Capability.ADMIN)
            raise

        return [event]

    def handle_add_grants(
        self,
        command: AddGrants,
        command_id: str,
        actor_id: str,
        pool_projection: PoolProjection,
        registry: GrantRegistry,
    ) -> list[Event]:
        """
        Handle AddGrants command - fund and create a batch atomically

        Every precondition is checked over the whole batch first. The batch
        total is then pulled from the caller in one transfer while the
        GrantCreated events are staged; a refused transfer discards them.

        Raises:
            PoolNotInitialized: If no pool exists
            Unauthorized: If actor lacks the grant-issuance capability
            InvalidBatch: On any malformed entry
            ArithmeticFault: If the batch total overflows
            FundingFailure: If custody refuses the funding transfer
        """
        now = self.time_provider.now()

        pool = validate_pool_exists(pool_projection.pool)
        validate_capability(self.authorizer, actor_id, Capability.ISSUE_GRANTS)
        validate_grant_batch(command.recipients, command.amounts, registry, self.policy)

        total = checked_sum(command.amounts)
        checked_add(pool.total_amount, total)

        batch_id = generate_id()
        events: list[Event] = []
        version = pool_projection.version
        for recipient, amount in zip(command.recipients, command.amounts):
            version += 1
            payload = GrantCreated(
                batch_id=batch_id,
                recipient=recipient,
                amount=amount,
                per_second_rate=calculator.per_second_rate(
                    amount, pool.vesting_duration
                ),
                funded_by=actor_id,
                created_at=now,
            ).model_dump(mode="json")
            events.append(
                self._build_event(
                    "GrantCreated", payload, command_id, actor_id, version, now
                )
            )

        try:
            with self.event_store.staged_append(
                LEDGER_STREAM_ID, pool_projection.version, events
            ):
                if not self.custody.transfer_in(actor_id, total):
                    raise FundingFailure(funder=actor_id, amount=total)
        except JournalCommitFailed as e:
            self._reverse_transfer(
                e, "funding", actor_id, total, self.custody.transfer_out
            )

        logger.info(
            "Grant batch funded",
            batch_id=batch_id,
            grant_count=len(events),
        )
        return events

    def handle_claim(
        self,
        command: Claim,
        command_id: str,
        actor_id: str,
        pool_projection: PoolProjection,
        registry: GrantRegistry,
    ) -> list[Event]:
        """
        Handle Claim command - pay out everything currently claimable

        A caller without a grant (including a null caller) is treated as
        holding a zero grant, so the claim is rejected as having nothing to
        claim.

        Raises:
            PoolNotInitialized: If no pool exists
            NoClaimableAmount: If nothing is vested and unclaimed
            TransferFailure: If custody refuses the payout
            LedgerInconsistency: If stored state is broken
        """
        now = self.time_provider.now()

        pool = validate_pool_exists(pool_projection.pool)
        if is_null_identity(actor_id):
            raise NoClaimableAmount(str(actor_id))
        grant = registry.get(actor_id) or Grant.empty(actor_id)

        amount = calculator.claimable(pool, grant, now)
        if amount == 0:
            raise NoClaimableAmount(actor_id)

        new_total = checked_add(grant.total_claimed, amount)
        checked_add(pool.total_claimed, amount)

        payload = TokensClaimed(
            recipient=actor_id,
            amount=amount,
            total_claimed=new_total,
            claimed_at=now,
        ).model_dump(mode="json")
        event = self._build_event(
            "TokensClaimed",
            payload,
            command_id,
            actor_id,
            pool_projection.version + 1,
            now,
        )

        try:
            with self.event_store.staged_append(
                LEDGER_STREAM_ID, pool_projection.version, [event]
            ):
                if not self.custody.transfer_out(actor_id, amount):
                    raise TransferFailure(recipient=actor_id, amount=amount)
        except JournalCommitFailed as e:
            self._reverse_transfer(
                e, "payout", actor_id, amount, self.custody.transfer_in
            )

        return [event]

    def handle_change_admin(
        self,
        command: ChangeAdmin,
        command_id: str,
        actor_id: str,
        pool_projection: PoolProjection,
    ) -> list[Event]:
        """
        Handle ChangeAdmin command

        The grant/revoke calls run inside the staged append, so a failing
        call discards the AdminChanged event and the admin stays unchanged.

        Raises:
            PoolNotInitialized: If no pool exists
            Unauthorized: If actor is not an admin
            InvalidConfiguration: If new_admin is null or the actor itself
        """
        now = self.time_provider.now()

        validate_pool_exists(pool_projection.pool)
        validate_capability(self.authorizer, actor_id, Capability.ADMIN)
        new_admin = validate_new_admin(actor_id, command.new_admin)

        payload = AdminChanged(
            previous_admin=actor_id,
            new_admin=new_admin,
            changed_at=now,
        ).model_dump(mode="json")
        event = self._build_event(
            "AdminChanged",
            payload,
            command_id,
            actor_id,
            pool_projection.version + 1,
            now,
        )

        try:
            with self.event_store.staged_append(
                LEDGER_STREAM_ID, pool_projection.version, [event]
            ):
                self.authorizer.grant(new_admin, Capability.ADMIN)
                try:
                    self.authorizer.revoke(actor_id, Capability.ADMIN)
                except Exception:
                    self.authorizer.revoke(new_admin, Capability.ADMIN)
                    raise
        except JournalCommitFailed:
            self.authorizer.grant(actor_id, Capability.ADMIN)
            self.authorizer.revoke(new_admin, Capability.ADMIN)
            raise

        return [event]

    def handle_set_issuer(
        self,
        command: SetIssuer,
        command_id: str,
        actor_id: str,
        pool_projection: PoolProjection,
    ) -> list[Event]:
        """
        Handle SetIssuer command (grant or revoke ISSUE_GRANTS)

        Raises:
            PoolNotInitialized: If no pool exists
            Unauthorized: If actor is not an admin
            InvalidConfiguration: If account is null
        """
        now = self.time_provider.now()

        validate_pool_exists(pool_projection.pool)
        validate_capability(self.authorizer, actor_id, Capability.ADMIN)
        if is_null_identity(command.account):
            raise InvalidConfiguration("Issuer must be a non-null account")

        if command.enabled:
            event_type = "IssuerGranted"
            payload = IssuerGranted(
                account=command.account, granted_by=actor_id, granted_at=now
            ).model_dump(mode="json")
        else:
            event_type = "IssuerRevoked"
            payload = IssuerRevoked(
                account=command.account, revoked_by=actor_id, revoked_at=now
            ).model_dump(mode="json")

        event = self._build_event(
            event_type,
            payload,
            command_id,
            actor_id,
            pool_projection.version + 1,
            now,
        )

        was_issuer = self.authorizer.authorize(
            command.account, Capability.ISSUE_GRANTS
        )
        try:
            with self.event_store.staged_append(
                LEDGER_STREAM_ID, pool_projection.version, [event]
            ):
                self._set_issuer(command.account, command.enabled)
        except JournalCommitFailed:
            self._set_issuer(command.account, was_issuer)
            raise

        return [event]

    def _set_issuer(self, account: str, enabled: bool) -> None:
        if enabled:
            self.authorizer.grant(account, Capability.ISSUE_GRANTS)
        else:
            self.authorizer.revoke(account, Capability.ISSUE_GRANTS)
