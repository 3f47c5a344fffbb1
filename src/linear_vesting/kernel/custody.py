"""
Token custody - boundary to the external value-transfer mechanism

The ledger only records who is owed what. Moving units into and out of
custody is delegated to a TokenCustody implementation, which reports
success or failure and never raises for an ordinary refusal.
"""

import threading
from typing import Protocol

from pydantic import BaseModel

from linear_vesting.kernel.logging import get_logger

logger = get_logger(__name__)


class TokenCustody(Protocol):
    """Protocol for the external transfer mechanism"""

    def transfer_in(self, sender: str, amount: int) -> bool:
        """Pull amount units from sender into custody; False on refusal"""
        ...

    def transfer_out(self, recipient: str, amount: int) -> bool:
        """Pay amount units from custody to recipient; False on refusal"""
        ...


class TransferRecord(BaseModel):
    """One transfer observed by an in-process custody"""

    direction: str  # "in" or "out"
    account: str
    amount: int


class InMemoryCustody:
    """
    Balance-backed custody for tests and simulations

    Accounts hold balances; transfer_in fails when the sender cannot cover
    the amount, transfer_out fails when custody itself cannot.
    """

    def __init__(self, balances: dict[str, int] | None = None) -> None:
        self.balances: dict[str, int] = dict(balances or {})
        self.held = 0
        self.transfers: list[TransferRecord] = []
        self._lock = threading.Lock()

    def mint(self, account: str, amount: int) -> None:
        with self._lock:
            self.balances[account] = self.balances.get(account, 0) + amount

    def balance_of(self, account: str) -> int:
        with self._lock:
            return self.balances.get(account, 0)

    def transfer_in(self, sender: str, amount: int) -> bool:
        with self._lock:
            available = self.balances.get(sender, 0)
            if available < amount:
                logger.info("Custody refused inbound transfer", available=available)
                return False
            self.balances[sender] = available - amount
            self.held += amount
            self.transfers.append(
                TransferRecord(direction="in", account=sender, amount=amount)
            )
            return True

    def transfer_out(self, recipient: str, amount: int) -> bool:
        with self._lock:
            if self.held < amount:
                logger.info("Custody refused outbound transfer", held=self.held)
                return False
            self.held -= amount
            self.balances[recipient] = self.balances.get(recipient, 0) + amount
            self.transfers.append(
                TransferRecord(direction="out", account=recipient, amount=amount)
            )
            return True


class AccountingCustody:
    """
    Custody that always succeeds and only records transfers

    Used by the CLI, where settlement happens outside the ledger and the
    journal itself is the record of what moved.
    """

    def __init__(self) -> None:
        self.transfers: list[TransferRecord] = []

    def transfer_in(self, sender: str, amount: int) -> bool:
        self.transfers.append(TransferRecord(direction="in", account=sender, amount=amount))
        return True

    def transfer_out(self, recipient: str, amount: int) -> bool:
        self.transfers.append(
            TransferRecord(direction="out", account=recipient, amount=amount)
        )
        return True
