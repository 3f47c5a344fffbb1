"""
Journal event envelope

Events are immutable facts: a pool was initialized, a grant was created,
units were claimed, a capability moved. The ledger's state is whatever
replaying them produces.
"""

import json
from datetime import datetime
from typing import Any, Mapping

from pydantic import BaseModel, Field

# Column order shared by every journal INSERT and SELECT
JOURNAL_COLUMNS = (
    "event_id",
    "stream_id",
    "stream_type",
    "version",
    "command_id",
    "event_type",
    "occurred_at",
    "actor_id",
    "payload_json",
)


class Event(BaseModel):
    """
    One journal entry

    stream_id + version gives optimistic locking; command_id ties every
    event back to the call that produced it. Payload amounts are plain ints
    and round-trip through JSON at full 256-bit width.
    """

    event_id: str
    stream_id: str
    stream_type: str
    event_type: str = Field(
        ..., description="PoolInitialized, GrantCreated, TokensClaimed, ..."
    )
    occurred_at: datetime = Field(..., description="UTC time of the ledger clock")
    actor_id: str | None = Field(default=None, description="Calling account")
    command_id: str
    payload: dict = Field(default_factory=dict)
    version: int = Field(..., ge=1, description="Stream version after this event")

    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "examples": [
                {
                    "event_id": "01908e9a-3b87-7000-8000-123456789abc",
                    "stream_id": "vesting-pool",
                    "stream_type": "pool",
                    "event_type": "TokensClaimed",
                    "occurred_at": "2026-01-01T00:00:50Z",
                    "actor_id": "0xalice",
                    "command_id": "01908e9a-3b80-7000-8000-000000000001",
                    "payload": {"recipient": "0xalice", "amount": 500},
                    "version": 4,
                }
            ]
        },
    }

    def to_row(self) -> tuple:
        """Values in JOURNAL_COLUMNS order"""
        return (
            self.event_id,
            self.stream_id,
            self.stream_type,
            self.version,
            self.command_id,
            self.event_type,
            self.occurred_at.isoformat(),
            self.actor_id,
            json.dumps(self.payload),
        )

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Event":
        return cls(
            event_id=row["event_id"],
            stream_id=row["stream_id"],
            stream_type=row["stream_type"],
            version=row["version"],
            command_id=row["command_id"],
            event_type=row["event_type"],
            occurred_at=datetime.fromisoformat(row["occurred_at"]),
            actor_id=row["actor_id"],
            payload=json.loads(row["payload_json"]),
        )


def create_event(
    *,
    event_id: str,
    stream_id: str,
    stream_type: str,
    event_type: str,
    occurred_at: datetime,
    command_id: str,
    version: int,
    actor_id: str | None = None,
    payload: dict | None = None,
) -> Event:
    return Event(
        event_id=event_id,
        stream_id=stream_id,
        stream_type=stream_type,
        event_type=event_type,
        occurred_at=occurred_at,
        actor_id=actor_id,
        command_id=command_id,
        payload=payload or {},
        version=version,
    )
