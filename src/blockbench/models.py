"""Benchmark domain data structures.

RPC payloads are parsed into these at the client boundary so the tracker and
stats code never touch raw dicts.
"""

from dataclasses import dataclass, field
from functools import total_ordering

from blockbench.constants import TxState
from blockbench.errors import InternalConsistencyError


def parse_int(value) -> int:
    """Accept ints, decimal strings and 0x-prefixed hex strings."""
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        return int(value, 16) if value.startswith(("0x", "0X")) else int(value)
    raise ValueError(f"expected an integer, got {value!r}")


def ms_to_seconds(value) -> int:
    return parse_int(value) // 1000


@total_ordering
@dataclass(frozen=True, slots=True)
class BlockTimestamp:
    """Height/time pair of a block. Ordered by timestamp."""

    number: int
    timestamp: int  # seconds

    def __lt__(self, other: "BlockTimestamp") -> bool:
        if not isinstance(other, BlockTimestamp):
            return NotImplemented
        return self.timestamp < other.timestamp

    @classmethod
    def from_header(cls, header: dict) -> "BlockTimestamp":
        """Build from an RPC header dict, converting the millisecond timestamp."""
        try:
            return cls(number=parse_int(header["number"]), timestamp=ms_to_seconds(header["timestamp"]))
        except KeyError as e:
            raise ValueError(f"header missing {e.args[0]!r}: {header}") from None

    def __str__(self):
        return f"block {self.number} {self.timestamp}"


@dataclass(slots=True)
class TransactionRecord:
    tx_hash: str
    sent_at: BlockTimestamp
    proposed_at: BlockTimestamp | None = None
    committed_at: BlockTimestamp | None = None

    @property
    def state(self) -> TxState:
        if self.committed_at is not None:
            return TxState.COMMITTED
        if self.proposed_at is not None:
            return TxState.PROPOSED
        return TxState.PENDING

    def mark_proposed(self, at: BlockTimestamp) -> None:
        if self.state is not TxState.PENDING:
            raise InternalConsistencyError(f"{self.tx_hash} proposed twice (state {self.state})")
        self.proposed_at = at

    def mark_committed(self, at: BlockTimestamp) -> None:
        if self.state is not TxState.PROPOSED:
            raise InternalConsistencyError(f"{self.tx_hash} committed from state {self.state}")
        self.committed_at = at

    def __str__(self):
        return (
            f"task {self.tx_hash} send_at {self.sent_at} "
            f"proposed_at {self.proposed_at} committed_at {self.committed_at}"
        )


@dataclass(slots=True)
class UncleBlock:
    proposals: list[str] = field(default_factory=list)


def _proposals_of(raw: dict) -> list[str]:
    return list(raw.get("proposals", raw.get("proposal_transactions", [])))


@dataclass(slots=True)
class Block:
    """A block as the tracker sees it.

    `proposals` holds short ids, `committed` holds full transaction hashes.
    """

    number: int
    hash: str | None
    timestamp: int  # seconds
    proposals: list[str] = field(default_factory=list)
    committed: list[str] = field(default_factory=list)
    uncles: list[UncleBlock] = field(default_factory=list)

    @property
    def block_time(self) -> BlockTimestamp:
        return BlockTimestamp(number=self.number, timestamp=self.timestamp)

    @classmethod
    def from_rpc(cls, result: dict) -> "Block":
        """Parse a get_block result.

        Accepts the nested layout (header/proposals/transactions) as well as the
        older flat one (number/proposal_transactions/commit_transactions).
        """
        if not isinstance(result, dict):
            raise ValueError(f"block must be an object, got {type(result).__name__}")
        header = result.get("header", result)
        ts = BlockTimestamp.from_header(header)
        txs = result.get("transactions", result.get("commit_transactions", []))
        committed = []
        for tx in txs:
            tx_hash = tx.get("hash") if isinstance(tx, dict) else tx
            if not tx_hash:
                raise ValueError(f"committed transaction without hash in block {ts.number}")
            committed.append(tx_hash)
        uncles = [UncleBlock(proposals=_proposals_of(u)) for u in result.get("uncles", [])]
        return cls(
            number=ts.number,
            hash=header.get("hash"),
            timestamp=ts.timestamp,
            proposals=_proposals_of(result),
            committed=committed,
            uncles=uncles,
        )


@dataclass(slots=True)
class Cell:
    """A spendable output used as a funding allocation."""

    out_point: dict
    capacity: int
    lock_hash: str | None = None

    @classmethod
    def from_rpc(cls, raw: dict) -> "Cell":
        return cls(
            out_point=raw["out_point"],
            capacity=parse_int(raw["capacity"]),
            lock_hash=raw.get("lock_hash"),
        )


@dataclass(slots=True)
class SubmissionFailure:
    index: int
    worker: int
    reason: str
    message: str
