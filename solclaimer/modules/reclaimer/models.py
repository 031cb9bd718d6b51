"""
Reclaimer Data Model
====================
Sub-accounts found by a scan, close batches, per-batch outcomes, and the
persisted per-owner reclamation statistics.

Lifecycle:
    SubAccount    created by a scan, discarded by the next scan
    Batch         PLANNED → BUILT → SUBMITTED → CONFIRMED | FAILED (used once)
    Stats/Event   append-only, mutated only by the accountant
"""

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from solders.hash import Hash
from solders.instruction import Instruction
from solders.message import MessageV0
from solders.pubkey import Pubkey
from spl.token.constants import TOKEN_2022_PROGRAM_ID, TOKEN_PROGRAM_ID


class ProgramVariant(Enum):
    """Token program governing a sub-account."""
    TOKEN = "spl-token"
    TOKEN_2022 = "spl-token-2022"

    @property
    def program_id(self) -> Pubkey:
        return TOKEN_PROGRAM_ID if self is ProgramVariant.TOKEN else TOKEN_2022_PROGRAM_ID

    @property
    def is_primary(self) -> bool:
        return self is ProgramVariant.TOKEN

    @classmethod
    def from_program_id(cls, program_id) -> "ProgramVariant":
        key = str(program_id)
        for variant in cls:
            if str(variant.program_id) == key:
                return variant
        raise ValueError(f"Unsupported token program: {key}")


@dataclass(frozen=True)
class TokenMeta:
    """Best-effort display metadata for a mint."""
    name: Optional[str] = None
    symbol: Optional[str] = None
    image: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not (self.name or self.symbol or self.image)


@dataclass(frozen=True)
class SubAccount:
    """One closeable token sub-account (zero balance, positive rent)."""
    address: str
    variant: ProgramVariant
    mint: str
    lamports: int
    meta: Optional[TokenMeta] = None

    @property
    def pubkey(self) -> Pubkey:
        return Pubkey.from_string(self.address)

    def with_meta(self, meta: TokenMeta) -> "SubAccount":
        return replace(self, meta=meta)

    @property
    def label(self) -> str:
        if self.meta and (self.meta.symbol or self.meta.name):
            return self.meta.symbol or self.meta.name
        return f"{self.mint[:4]}…{self.mint[-4:]}"


class ScanResultSet:
    """
    Ordered, address-unique scan output.

    `attach_metadata` is the single merge point for enrichment results;
    it replaces only the metadata of an existing entry (last write wins).
    """

    def __init__(self, owner: str, accounts: Iterable[SubAccount] = ()):
        self.owner = owner
        self._order: List[str] = []
        self._by_address: Dict[str, SubAccount] = {}
        for account in accounts:
            if account.address in self._by_address:
                raise ValueError(f"Duplicate sub-account {account.address}")
            self._order.append(account.address)
            self._by_address[account.address] = account

    def __len__(self) -> int:
        return len(self._order)

    def __iter__(self):
        return iter(self.accounts)

    def __contains__(self, address: str) -> bool:
        return address in self._by_address

    def get(self, address: str) -> Optional[SubAccount]:
        return self._by_address.get(address)

    @property
    def accounts(self) -> List[SubAccount]:
        return [self._by_address[a] for a in self._order]

    @property
    def total_lamports(self) -> int:
        return sum(a.lamports for a in self._by_address.values())

    def attach_metadata(self, address: str, meta: TokenMeta) -> bool:
        current = self._by_address.get(address)
        if current is None:
            return False
        self._by_address[address] = current.with_meta(meta)
        return True

    def select(self, addresses: Iterable[str]) -> List[SubAccount]:
        """Selected accounts in scan order; unknown addresses are ignored."""
        wanted = set(addresses)
        return [a for a in self.accounts if a.address in wanted]


class BatchState(Enum):
    PLANNED = "PLANNED"
    BUILT = "BUILT"
    SUBMITTED = "SUBMITTED"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"


_TRANSITIONS = {
    BatchState.PLANNED: {BatchState.BUILT, BatchState.FAILED},
    BatchState.BUILT: {BatchState.SUBMITTED, BatchState.FAILED},
    BatchState.SUBMITTED: {BatchState.CONFIRMED, BatchState.FAILED},
    BatchState.CONFIRMED: set(),
    BatchState.FAILED: set(),
}


@dataclass
class Batch:
    """Up to MAX_IX_PER_TX close instructions sharing one blockhash."""
    index: int
    accounts: List[SubAccount]
    instructions: List[Instruction]
    state: BatchState = BatchState.PLANNED
    blockhash: Optional[Hash] = None
    message: Optional[MessageV0] = None
    signature: Optional[str] = None
    error: Optional[str] = None

    @property
    def number(self) -> int:
        return self.index + 1

    @property
    def addresses(self) -> List[str]:
        return [a.address for a in self.accounts]

    @property
    def expected_lamports(self) -> int:
        return sum(a.lamports for a in self.accounts)

    def _move(self, target: BatchState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise ValueError(f"Batch {self.number}: illegal transition {self.state.value} -> {target.value}")
        self.state = target

    def mark_built(self, blockhash: Hash, message: MessageV0) -> None:
        self._move(BatchState.BUILT)
        self.blockhash = blockhash
        self.message = message

    def mark_submitted(self, signature: str) -> None:
        self._move(BatchState.SUBMITTED)
        self.signature = signature

    def mark_confirmed(self) -> None:
        self._move(BatchState.CONFIRMED)

    def mark_failed(self, error: str) -> None:
        self._move(BatchState.FAILED)
        self.error = error


@dataclass(frozen=True)
class BatchOutcome:
    index: int
    addresses: Tuple[str, ...]
    state: BatchState
    signature: Optional[str] = None
    error: Optional[str] = None

    @property
    def confirmed(self) -> bool:
        return self.state is BatchState.CONFIRMED

    @classmethod
    def from_batch(cls, batch: Batch) -> "BatchOutcome":
        return cls(
            index=batch.index,
            addresses=tuple(batch.addresses),
            state=batch.state,
            signature=batch.signature,
            error=batch.error,
        )


@dataclass
class ExecutionResult:
    """Aggregated outcome of submitting every batch of one operation."""
    outcomes: List[BatchOutcome] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def confirmed(self) -> int:
        return sum(1 for o in self.outcomes if o.confirmed)

    @property
    def signatures(self) -> List[str]:
        return [o.signature for o in self.outcomes if o.confirmed and o.signature]

    @property
    def failures(self) -> List[BatchOutcome]:
        return [o for o in self.outcomes if not o.confirmed]

    @property
    def closed_addresses(self) -> List[str]:
        return [a for o in self.outcomes if o.confirmed for a in o.addresses]

    @property
    def failed_addresses(self) -> List[str]:
        return [a for o in self.outcomes if not o.confirmed for a in o.addresses]

    @property
    def summary(self) -> str:
        return f"{self.confirmed}/{self.total}"


@dataclass(frozen=True)
class FeeEstimate:
    """Advisory fee quote, valid only for the exact selection it priced."""
    selection: frozenset
    lamports: int
    batches: int
    fallback_batches: int = 0
    quoted_at: float = field(default_factory=time.time)

    def is_fresh_for(self, addresses: Iterable[str]) -> bool:
        return self.selection == frozenset(addresses)


# =============================================================================
# PERSISTED STATISTICS
# =============================================================================

@dataclass(frozen=True)
class ReclamationEvent:
    ts: int  # epoch milliseconds
    lamports: int
    signatures: Tuple[str, ...]
    closed: int

    def to_dict(self) -> dict:
        return {
            "ts": self.ts,
            "lamports": self.lamports,
            "signatures": list(self.signatures),
            "closed": self.closed,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ReclamationEvent":
        return cls(
            ts=int(data.get("ts", 0)),
            lamports=int(data.get("lamports", 0)),
            signatures=tuple(data.get("signatures") or ()),
            closed=int(data.get("closed", 0)),
        )

    @classmethod
    def now(cls, lamports: int, signatures: Iterable[str], closed: int) -> "ReclamationEvent":
        return cls(ts=int(time.time() * 1000), lamports=lamports, signatures=tuple(signatures), closed=closed)


@dataclass(frozen=True)
class ReclamationStats:
    """Cumulative per-owner totals; totals always equal the sum of events."""
    total_closed: int = 0
    total_reclaimed_lamports: int = 0
    events: Tuple[ReclamationEvent, ...] = ()

    @classmethod
    def empty(cls) -> "ReclamationStats":
        return cls()

    def with_event(self, event: ReclamationEvent) -> "ReclamationStats":
        if event.lamports < 0 or event.closed < 0:
            raise ValueError("Reclamation events cannot decrease totals")
        return ReclamationStats(
            total_closed=self.total_closed + event.closed,
            total_reclaimed_lamports=self.total_reclaimed_lamports + event.lamports,
            events=self.events + (event,),
        )

    def is_consistent(self) -> bool:
        return (
            self.total_closed == sum(e.closed for e in self.events)
            and self.total_reclaimed_lamports == sum(e.lamports for e in self.events)
        )

    def to_dict(self) -> dict:
        return {
            "totalClosed": self.total_closed,
            "totalReclaimedLamports": self.total_reclaimed_lamports,
            "events": [e.to_dict() for e in self.events],
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "ReclamationStats":
        if not data:
            return cls.empty()
        return cls(
            total_closed=int(data.get("totalClosed", 0)),
            total_reclaimed_lamports=int(data.get("totalReclaimedLamports", 0)),
            events=tuple(ReclamationEvent.from_dict(e) for e in data.get("events") or ()),
        )


@dataclass
class ReclamationReport:
    """
    Final report of one execute() call.

    `execution` is the irreversible on-ledger outcome; `persisted` and
    `persist_error` describe the best-effort statistics write.
    """
    owner: str
    selected: int
    execution: ExecutionResult
    before_lamports: int = 0
    after_lamports: int = 0
    net_lamports: int = 0
    gross_lamports: int = 0
    closed_count: int = 0
    event: Optional[ReclamationEvent] = None
    persisted: bool = False
    persist_error: Optional[str] = None
    explorer_links: List[str] = field(default_factory=list)
    log: List[str] = field(default_factory=list)

    @property
    def signatures(self) -> List[str]:
        return self.execution.signatures

    @property
    def ledger_success(self) -> bool:
        return self.execution.confirmed > 0
