from __future__ import annotations

"""
Escrow ledger: pooled deposits with a single recipient
-------------------------------------------------------

Anyone may deposit a positive integer amount; the pool accumulates until the
designated recipient withdraws it (all at once, or a chosen amount when
partial withdrawals are enabled). The owner fixed at construction may
redirect the recipient and, when the feature is on, halt and resume the
ledger.

Amounts are integer base units (wei). Bookkeeping invariants, checked by
`check_invariants()` and by the property tests:

  • sum(contributions.values()) == total_received
  • total_received - total_withdrawn == pool_balance >= 0
  • depositors holds each identity once, in order of first deposit

Every precondition is checked before any field changes. On withdrawal the
bookkeeping is updated *before* the payout hook moves value out; if the hook
raises, the bookkeeping is restored and the error propagates.

Concurrency: a coarse `threading.RLock` guards every method.
"""

from dataclasses import asdict, dataclass
from threading import RLock
from typing import Any, Callable, Dict, List, Optional

from ledgerlab.errors import (
    Halted,
    InsufficientFunds,
    InvalidArgument,
    OutOfRange,
    StorageError,
    Unauthorized,
)
from ledgerlab.events import Clock, Notification, NotificationLog, NotificationName
from ledgerlab.identity import Address, NULL_ADDRESS, derive_address, normalize_address
from ledgerlab.logging import get_logger

log = get_logger(__name__)

Amount = int
Payout = Callable[[Address, Amount], None]


@dataclass(frozen=True)
class DepositorRecord:
    identifier: Address
    cumulative_amount: Amount

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class LedgerStats:
    pool_balance: Amount
    total_received: Amount
    total_withdrawn: Amount
    depositor_count: int
    recipient: Address
    owner: Address
    halted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def _require_amount(amount: Any) -> Amount:
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidArgument("amount must be an integer", field="amount", value=amount)
    if amount <= 0:
        raise InvalidArgument("amount must be strictly positive", field="amount", value=amount)
    return amount


def _noop_payout(recipient: Address, amount: Amount) -> None:
    return None


class EscrowLedger:
    def __init__(
        self,
        owner: Address,
        recipient: Address,
        *,
        address: Optional[Address] = None,
        halt_enabled: bool = True,
        partial_withdraw_enabled: bool = True,
        payout: Optional[Payout] = None,
        clock: Optional[Clock] = None,
        next_seq: int = 0,
    ) -> None:
        self.owner = normalize_address(owner, field="owner")
        self.address = normalize_address(address) if address else derive_address(f"ledger:{self.owner}")
        self.recipient = self._check_recipient(recipient)
        self.halt_enabled = bool(halt_enabled)
        self.partial_withdraw_enabled = bool(partial_withdraw_enabled)
        self.payout: Payout = payout or _noop_payout
        self.events = NotificationLog(self.address, clock=clock, next_seq=next_seq)

        self.contributions: Dict[Address, Amount] = {}
        self.depositors: List[Address] = []
        self.total_received: Amount = 0
        self.total_withdrawn: Amount = 0
        self.pool_balance: Amount = 0
        self.halted = False
        self._lock = RLock()

    # ------------------------------------------------------------ deposits

    def deposit(self, caller: Address, amount: Amount) -> Notification:
        caller = normalize_address(caller, field="caller")
        with self._lock:
            self._require_running("deposit")
            amount = _require_amount(amount)
            if caller not in self.contributions:
                self.depositors.append(caller)
                self.contributions[caller] = 0
            self.contributions[caller] += amount
            self.total_received += amount
            self.pool_balance += amount
            rec = self.events.emit(
                NotificationName.DEPOSIT, stamp="timestamp", depositor=caller, amount=amount
            )
        log.info("deposit accepted", extra={"depositor": caller, "amount": amount})
        return rec

    # receivePayment / receive() in the payment contract
    receive_payment = deposit

    # ---------------------------------------------------------- withdrawals

    def withdraw(self, caller: Address) -> Notification:
        """Move the whole pool to the recipient."""
        caller = normalize_address(caller, field="caller")
        with self._lock:
            self._require_running("withdraw")
            self._require_recipient(caller)
            if self.pool_balance == 0:
                raise InsufficientFunds(requested=0, available=0, message="pool is empty")
            return self._pay_out(self.pool_balance)

    def withdraw_amount(self, caller: Address, amount: Amount) -> Notification:
        """Move `amount` (<= pool_balance) to the recipient."""
        caller = normalize_address(caller, field="caller")
        with self._lock:
            if not self.partial_withdraw_enabled:
                raise InvalidArgument("partial withdrawals are disabled", field="amount", value=amount)
            self._require_running("withdraw")
            self._require_recipient(caller)
            amount = _require_amount(amount)
            if amount > self.pool_balance:
                raise InsufficientFunds(requested=amount, available=self.pool_balance)
            return self._pay_out(amount)

    def _pay_out(self, amount: Amount) -> Notification:
        recipient = self.recipient
        self.pool_balance -= amount
        self.total_withdrawn += amount
        try:
            self.payout(recipient, amount)
        except Exception:
            self.pool_balance += amount
            self.total_withdrawn -= amount
            log.error("payout failed; bookkeeping restored", extra={"recipient": recipient, "amount": amount})
            raise
        rec = self.events.emit(
            NotificationName.WITHDRAWAL, stamp="timestamp", recipient=recipient, amount=amount
        )
        log.info("withdrawal paid", extra={"recipient": recipient, "amount": amount})
        return rec

    # ---------------------------------------------------------------- admin

    def change_recipient(self, caller: Address, new_recipient: Address) -> Notification:
        caller = normalize_address(caller, field="caller")
        with self._lock:
            self._require_owner(caller)
            new_recipient = self._check_recipient(new_recipient)
            previous, self.recipient = self.recipient, new_recipient
            rec = self.events.emit(
                NotificationName.RECIPIENT_CHANGED, previous=previous, recipient=new_recipient
            )
        log.info("recipient changed", extra={"previous": previous, "recipient": new_recipient})
        return rec

    def halt(self, caller: Address) -> Optional[Notification]:
        return self._set_halted(caller, True)

    def resume(self, caller: Address) -> Optional[Notification]:
        return self._set_halted(caller, False)

    def _set_halted(self, caller: Address, value: bool) -> Optional[Notification]:
        caller = normalize_address(caller, field="caller")
        with self._lock:
            self._require_owner(caller)
            if not self.halt_enabled:
                raise InvalidArgument("halting is disabled for this ledger", field="halted", value=value)
            if self.halted == value:
                return None
            self.halted = value
            name = NotificationName.HALTED if value else NotificationName.RESUMED
            rec = self.events.emit(name, by=caller)
        log.warning("ledger halted" if value else "ledger resumed", extra={"by": caller})
        return rec

    # ---------------------------------------------------------------- reads

    def get_stats(self) -> LedgerStats:
        with self._lock:
            return LedgerStats(
                pool_balance=self.pool_balance,
                total_received=self.total_received,
                total_withdrawn=self.total_withdrawn,
                depositor_count=len(self.depositors),
                recipient=self.recipient,
                owner=self.owner,
                halted=self.halted,
            )

    def get_depositor(self, index: int) -> DepositorRecord:
        with self._lock:
            if isinstance(index, bool) or not isinstance(index, int):
                raise InvalidArgument("depositor index must be an integer", field="index", value=index)
            if index < 0 or index >= len(self.depositors):
                raise OutOfRange(index=index, length=len(self.depositors), what="depositor")
            who = self.depositors[index]
            return DepositorRecord(identifier=who, cumulative_amount=self.contributions[who])

    def depositor_records(self) -> List[DepositorRecord]:
        with self._lock:
            return [DepositorRecord(a, self.contributions[a]) for a in self.depositors]

    def contribution_of(self, address: Address) -> Amount:
        with self._lock:
            return self.contributions.get(normalize_address(address), 0)

    def get_recipient(self) -> Address:
        return self.recipient

    def check_invariants(self) -> None:
        with self._lock:
            if sum(self.contributions.values()) != self.total_received:
                raise AssertionError("contributions do not sum to total_received")
            if self.total_received - self.total_withdrawn != self.pool_balance:
                raise AssertionError("pool_balance != total_received - total_withdrawn")
            if self.pool_balance < 0:
                raise AssertionError("pool_balance negative")
            if len(set(self.depositors)) != len(self.depositors):
                raise AssertionError("duplicate depositor entries")
            if set(self.depositors) != set(self.contributions):
                raise AssertionError("depositor list and contributions disagree")

    # ---------------------------------------------------------- persistence

    def dump(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "owner": self.owner,
                "recipient": self.recipient,
                "address": self.address,
                "halt_enabled": self.halt_enabled,
                "partial_withdraw_enabled": self.partial_withdraw_enabled,
                "halted": self.halted,
                "depositors": [
                    {"identifier": a, "amount": self.contributions[a]} for a in self.depositors
                ],
                "total_received": self.total_received,
                "total_withdrawn": self.total_withdrawn,
                "pool_balance": self.pool_balance,
                "next_seq": self.events.next_seq,
            }

    @classmethod
    def load(
        cls,
        data: Dict[str, Any],
        *,
        payout: Optional[Payout] = None,
        clock: Optional[Clock] = None,
    ) -> "EscrowLedger":
        try:
            led = cls(
                data["owner"],
                data["recipient"],
                address=data["address"],
                halt_enabled=data["halt_enabled"],
                partial_withdraw_enabled=data["partial_withdraw_enabled"],
                payout=payout,
                clock=clock,
                next_seq=data.get("next_seq", 0),
            )
            led.halted = bool(data["halted"])
            for d in data["depositors"]:
                who = normalize_address(d["identifier"])
                led.depositors.append(who)
                led.contributions[who] = int(d["amount"])
            led.total_received = int(data["total_received"])
            led.total_withdrawn = int(data["total_withdrawn"])
            led.pool_balance = int(data["pool_balance"])
            led.check_invariants()
        except (KeyError, TypeError, ValueError, InvalidArgument, AssertionError) as e:
            raise StorageError("malformed ledger snapshot", details={"error": str(e)}) from e
        return led

    # ------------------------------------------------------------ internals

    def _require_running(self, operation: str) -> None:
        if self.halted:
            raise Halted(operation=operation)

    def _require_owner(self, caller: Address) -> None:
        if caller != self.owner:
            raise Unauthorized(caller=caller, required=self.owner, message="owner only")

    def _require_recipient(self, caller: Address) -> None:
        if caller != self.recipient:
            raise Unauthorized(caller=caller, required=self.recipient, message="recipient only")

    def _check_recipient(self, recipient: Address) -> Address:
        r = normalize_address(recipient, field="recipient")
        if r == NULL_ADDRESS:
            raise InvalidArgument("recipient must not be the null address", field="recipient", value=r)
        if r == self.address:
            raise InvalidArgument("recipient must not be the ledger itself", field="recipient", value=r)
        return r

    def __repr__(self) -> str:
        s = self.get_stats()
        return (
            f"EscrowLedger(address={self.address}, pool={s.pool_balance}, "
            f"depositors={s.depositor_count}, halted={s.halted})"
        )


__all__ = ["EscrowLedger", "LedgerStats", "DepositorRecord", "Payout"]
