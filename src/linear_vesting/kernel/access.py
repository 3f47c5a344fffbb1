"""
Capability checks - boundary to the external authorization system

The ledger never decides who holds which permission. It asks an injected
Authorizer and, for administrative transfers, issues grant/revoke calls
against it.
"""

import threading
from collections import defaultdict
from enum import Enum
from typing import Protocol


class Capability(str, Enum):
    """Permissions the ledger checks before privileged operations"""

    ADMIN = "ADMIN"  # change admin, manage issuers
    ISSUE_GRANTS = "ISSUE_GRANTS"  # fund and create grants


class Authorizer(Protocol):
    """Protocol for the external capability system"""

    def authorize(self, account: str, capability: Capability) -> bool:
        """Return True if account currently holds capability"""
        ...

    def grant(self, account: str, capability: Capability) -> None:
        ...

    def revoke(self, account: str, capability: Capability) -> None:
        ...


class RoleRegistry:
    """
    In-memory Authorizer with set semantics

    Granting a held capability or revoking a missing one is a no-op, so
    replaying the journal's capability events into it is safe.
    """

    def __init__(self) -> None:
        self._holders: defaultdict[Capability, set[str]] = defaultdict(set)
        self._lock = threading.Lock()

    def authorize(self, account: str, capability: Capability) -> bool:
        with self._lock:
            return account in self._holders[capability]

    def grant(self, account: str, capability: Capability) -> None:
        with self._lock:
            self._holders[capability].add(account)

    def revoke(self, account: str, capability: Capability) -> None:
        with self._lock:
            self._holders[capability].discard(account)

    def holders(self, capability: Capability) -> list[str]:
        with self._lock:
            return sorted(self._holders[capability])
