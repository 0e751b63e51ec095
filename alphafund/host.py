"""
Host ledger capabilities consumed by the engine.

The engine needs little from the ledger it runs on: atomic value transfers
(single or batched, each all-or-nothing), the balance of an account and a
monotonic clock.  :class:`HostLedger` names that contract;
:class:`InMemoryHostLedger` implements it for local runs and tests.
"""

import logging
import time
from typing import Callable, Dict, Optional, Protocol, Sequence, Tuple

logger = logging.getLogger(__name__)


class TransferError(Exception):
    """Raised by a host when a transfer did not happen."""


class HostLedger(Protocol):
    def transfer(self, source: str, destination: str, amount: int) -> None:
        """Move ``amount`` from ``source`` to ``destination`` or raise :class:`TransferError`."""
        ...

    def transfer_many(self, source: str, payments: Sequence[Tuple[str, int]]) -> None:
        """Make every ``(destination, amount)`` payment from ``source``, or none of them."""
        ...

    def balance_of(self, account: str) -> int:
        """Current balance of ``account``."""
        ...

    def now(self) -> int:
        """Current ledger time in seconds; never decreases."""
        ...


class InMemoryHostLedger:
    """
    Token balances held in a dict.

    With ``custodian`` set, only that account's balance is enforced and every
    other account behaves like an external wallet with unlimited funds: it
    is never debited, only credited, so the API can run locally without a
    faucet.  Without it, every debit is checked.

    ``clock`` defaults to wall-clock seconds; tests pass a manual clock.
    """

    def __init__(
        self,
        custodian: Optional[str] = None,
        clock: Optional[Callable[[], int]] = None,
    ):
        self.custodian = custodian
        self._clock = clock or (lambda: int(time.time()))
        self._balances: Dict[str, int] = {}
        self._last_now = 0
        self.fail_transfers = False

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def credit(self, account: str, amount: int) -> None:
        """Mint ``amount`` into ``account`` (funding wallets, simulating trading gains)."""
        self._balances[account] = self.balance_of(account) + amount

    def debit(self, account: str, amount: int) -> None:
        """Burn ``amount`` from ``account`` (simulating trading losses)."""
        if amount > self.balance_of(account):
            raise TransferError(f"Account '{account}' cannot cover a debit of {amount}")
        self._balances[account] = self.balance_of(account) - amount

    def _checked(self, account: str) -> bool:
        return self.custodian is None or account == self.custodian

    def _debit_if_checked(self, account: str, amount: int) -> None:
        if self._checked(account):
            self._balances[account] = self.balance_of(account) - amount

    def transfer(self, source: str, destination: str, amount: int) -> None:
        if self.fail_transfers:
            raise TransferError("Host ledger rejected the transfer")
        if amount <= 0:
            raise TransferError(f"Transfer amount must be positive (got {amount})")
        if self._checked(source) and self.balance_of(source) < amount:
            raise TransferError(
                f"Insufficient balance in '{source}': has {self.balance_of(source)}, "
                f"needs {amount}"
            )
        self._debit_if_checked(source, amount)
        self._balances[destination] = self.balance_of(destination) + amount
        logger.debug("Host transfer %s → %s: %d", source, destination, amount)

    def transfer_many(self, source: str, payments: Sequence[Tuple[str, int]]) -> None:
        if self.fail_transfers:
            raise TransferError("Host ledger rejected the batch")
        if any(amount <= 0 for _, amount in payments):
            raise TransferError("Every batched amount must be positive")
        total = sum(amount for _, amount in payments)
        if self._checked(source) and self.balance_of(source) < total:
            raise TransferError(
                f"Insufficient balance in '{source}': has {self.balance_of(source)}, "
                f"needs {total}"
            )
        for destination, amount in payments:
            self._debit_if_checked(source, amount)
            self._balances[destination] = self.balance_of(destination) + amount
        logger.debug("Host batch from %s: %d payments, %d total", source, len(payments), total)

    def now(self) -> int:
        # Clamp so a misbehaving clock can never move ledger time backwards.
        self._last_now = max(self._last_now, int(self._clock()))
        return self._last_now


class ManualClock:
    """A settable clock for deterministic tests and simulations."""

    def __init__(self, start: int = 0):
        self.value = start

    def __call__(self) -> int:
        return self.value

    def advance(self, seconds: int) -> None:
        self.value += seconds
