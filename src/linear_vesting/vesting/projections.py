"""
Vesting Projections - Read models rebuilt from the journal

PoolProjection: the singleton pool record and its aggregate counters
GrantRegistry: recipient → Grant map, write-once-then-accumulate
ClaimLog: claim history for audit queries
"""

from linear_vesting.kernel.events import Event
from linear_vesting.vesting.models import ClaimRecord, Grant, Pool


class PoolProjection:
    """
    The pool record

    Built from events: PoolInitialized, GrantCreated, TokensClaimed, AdminChanged
    """

    def __init__(self) -> None:
        self.pool: Pool | None = None
        self.version = 0

    def apply_event(self, event: Event) -> None:
        if event.event_type == "PoolInitialized":
            self._apply_pool_initialized(event)
        elif event.event_type == "GrantCreated":
            self._apply_grant_created(event)
        elif event.event_type == "TokensClaimed":
            self._apply_tokens_claimed(event)
        elif event.event_type == "AdminChanged" and self.pool is not None:
            self.pool.admin = event.payload["new_admin"]
        self.version = event.version

    def _apply_pool_initialized(self, event: Event) -> None:
        payload = event.payload
        self.pool = Pool(
            name=payload["name"],
            token=payload["token"],
            admin=payload["admin"],
            start_time=payload["start_time"],
            end_time=payload["end_time"],
            vesting_duration=payload["vesting_duration"],
        )

    def _apply_grant_created(self, event: Event) -> None:
        if self.pool is None:
            return
        self.pool.total_amount += event.payload["amount"]
        self.pool.grant_count += 1

    def _apply_tokens_claimed(self, event: Event) -> None:
        if self.pool is None:
            return
        self.pool.total_claimed += event.payload["amount"]

    def get(self) -> Pool | None:
        """Copy of the pool record, or None before initialization"""
        return self.pool.model_copy() if self.pool else None


class GrantRegistry:
    """
    Per-recipient grant records

    A passive store: it never rejects writes itself. Uniqueness of grants is
    enforced by batch validation before any GrantCreated event exists.

    Built from events: GrantCreated, TokensClaimed
    """

    def __init__(self) -> None:
        self.grants: dict[str, Grant] = {}

    def apply_event(self, event: Event) -> None:
        if event.event_type == "GrantCreated":
            self._apply_grant_created(event)
        elif event.event_type == "TokensClaimed":
            self._apply_tokens_claimed(event)

    def _apply_grant_created(self, event: Event) -> None:
        payload = event.payload
        self.grants[payload["recipient"]] = Grant(
            recipient=payload["recipient"],
            amount=payload["amount"],
            per_second_rate=payload["per_second_rate"],
        )

    def _apply_tokens_claimed(self, event: Event) -> None:
        payload = event.payload
        grant = self.grants.get(payload["recipient"])
        if grant is not None:
            grant.total_claimed = payload["total_claimed"]

    # ========== Query Methods ==========

    def get(self, recipient: str) -> Grant | None:
        """Copy of the recipient's grant, or None if never granted"""
        grant = self.grants.get(recipient)
        return grant.model_copy() if grant else None

    def exists(self, recipient: str) -> bool:
        return recipient in self.grants

    def count(self) -> int:
        return len(self.grants)

    def list_all(self) -> list[Grant]:
        return [grant.model_copy() for grant in self.grants.values()]


class ClaimLog:
    """
    Claim history

    Built from events: TokensClaimed
    """

    def __init__(self) -> None:
        self.claims: list[ClaimRecord] = []

    def apply_event(self, event: Event) -> None:
        if event.event_type != "TokensClaimed":
            return
        payload = event.payload
        self.claims.append(
            ClaimRecord(
                recipient=payload["recipient"],
                amount=payload["amount"],
                total_claimed=payload["total_claimed"],
                claimed_at=payload["claimed_at"],
            )
        )

    def get_by_recipient(self, recipient: str) -> list[ClaimRecord]:
        return [claim for claim in self.claims if claim.recipient == recipient]

    def get_all(self) -> list[ClaimRecord]:
        return list(self.claims)
