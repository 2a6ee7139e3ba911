# blockbench/tracker.py
"""
Lifecycle tracking of benchmark transactions.

The tracker walks the chain one block at a time from a starting height and
moves each registered transaction through PENDING -> PROPOSED -> COMMITTED:

1. Proposal listings carry short ids, so pending transactions are indexed by
   their short id for O(1) resolution.
2. Commit listings carry full hashes and are resolved against the proposed set.
3. Uncle proposals count the same as main-chain proposals.

A tracker instance belongs to one run and is only driven by one coroutine at
a time; the mappings are not locked.
"""
import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass

import blockbench.constants as C
from blockbench.client import ChainClient
from blockbench.errors import DuplicateRegistrationError, InternalConsistencyError, RpcError
from blockbench.models import Block, BlockTimestamp, TransactionRecord

log = logging.getLogger("blockbench.tracker")


@dataclass(frozen=True, slots=True)
class Progress:
    proposed: int = 0
    committed: int = 0

    def __bool__(self):
        return bool(self.proposed or self.committed)


class BlockCursor:
    """Fetch blocks by height from the first endpoint that has them."""

    def __init__(self, clients: Sequence[ChainClient]):
        if not clients:
            raise ValueError("BlockCursor needs at least one client")
        self.clients = list(clients)

    async def fetch(self, height: int) -> Block | None:
        errors: list[RpcError] = []
        for client in self.clients:
            try:
                block_hash = await client.get_block_hash(height)
                if block_hash is None:
                    continue
                return await client.get_block(block_hash)
            except RpcError as e:
                log.warning("fetch block %s from %s failed: %s", height, getattr(client, "url", client), e)
                errors.append(e)
        if len(errors) == len(self.clients):
            raise errors[-1]
        return None


def short_id(tx_hash: str, length: int = C.SHORT_ID_LENGTH) -> str:
    return tx_hash[:length]


class LifecycleTracker:
    def __init__(
        self,
        cursor: BlockCursor,
        height: int,
        *,
        poll_interval: float = C.POLL_INTERVAL,
        short_id_length: int = C.SHORT_ID_LENGTH,
    ):
        self.cursor = cursor
        self.height = height
        self.poll_interval = poll_interval
        self.short_id_length = short_id_length

        self.pending: dict[str, TransactionRecord] = {}
        self.pending_by_short: dict[str, str] = {}
        self.proposed: dict[str, TransactionRecord] = {}
        self.committed: dict[str, TransactionRecord] = {}

    @property
    def total(self) -> int:
        return len(self.pending) + len(self.proposed) + len(self.committed)

    def counts(self) -> dict[str, int]:
        return {
            C.TxState.PENDING: len(self.pending),
            C.TxState.PROPOSED: len(self.proposed),
            C.TxState.COMMITTED: len(self.committed),
        }

    def records(self) -> list[TransactionRecord]:
        return [*self.pending.values(), *self.proposed.values(), *self.committed.values()]

    def committed_records(self) -> tuple[TransactionRecord, ...]:
        return tuple(self.committed.values())

    def register(self, tx_hash: str, record: TransactionRecord) -> None:
        if tx_hash in self.pending or tx_hash in self.proposed or tx_hash in self.committed:
            raise DuplicateRegistrationError(f"{tx_hash} registered twice")
        sid = short_id(tx_hash, self.short_id_length)
        owner = self.pending_by_short.get(sid)
        if owner is not None:
            raise InternalConsistencyError(f"short id {sid} of {tx_hash} collides with pending {owner}")
        self.pending[tx_hash] = record
        self.pending_by_short[sid] = tx_hash

    async def advance(self) -> Progress | None:
        """Scan the next block. Returns None when it doesn't exist yet."""
        height = self.height + 1
        block = await self.cursor.fetch(height)
        log.debug("check block %s %s", height, block.hash if block else None)
        if block is None:
            return None
        if block.number != height:
            raise InternalConsistencyError(f"asked for block {height}, got {block.number}")

        block_time = block.block_time
        proposed = 0
        for sid in block.proposals:
            proposed += self._mark_proposed(sid, block_time)
        for uncle in block.uncles:
            for sid in uncle.proposals:
                proposed += self._mark_proposed(sid, block_time)
        committed = 0
        for tx_hash in block.committed:
            committed += self._mark_committed(tx_hash, block_time)

        self.height = height
        return Progress(proposed=proposed, committed=committed)

    async def _poll(self) -> Progress | None:
        """advance(), sleeping poll_interval when there is nothing to scan."""
        try:
            progress = await self.advance()
        except RpcError as e:
            log.warning("block %s unavailable, retrying in %.1fs: %s", self.height + 1, self.poll_interval, e)
            progress = None
        else:
            if progress is None:
                log.debug("no block %s yet, sleeping %.1fs", self.height + 1, self.poll_interval)
        if progress is None:
            await asyncio.sleep(self.poll_interval)
        return progress

    async def wait_for(self, tx_hash: str) -> TransactionRecord:
        while True:
            await self._poll()
            record = self.committed.get(tx_hash)
            if record is not None:
                return record

    async def wait_for_all(self) -> None:
        # records committed before the wait (e.g. funding) don't count as progress
        done_before = len(self.committed)
        total = self.total - done_before
        while self.pending or self.proposed:
            if await self._poll():
                committed = len(self.committed) - done_before
                log.info(
                    "block %s: proposed %d/%d committed %d/%d",
                    self.height,
                    len(self.proposed) + committed,
                    total,
                    committed,
                    total,
                )

    def _mark_proposed(self, sid: str, block_time: BlockTimestamp) -> int:
        tx_hash = self.pending_by_short.pop(sid, None)
        if tx_hash is None:
            return 0
        record = self.pending.pop(tx_hash, None)
        if record is None:
            raise InternalConsistencyError(f"short id {sid} resolved to {tx_hash} but no pending record")
        record.mark_proposed(block_time)
        self.proposed[tx_hash] = record
        log.debug("tx %s get proposed at %s", tx_hash, block_time)
        return 1

    def _mark_committed(self, tx_hash: str, block_time: BlockTimestamp) -> int:
        record = self.proposed.pop(tx_hash, None)
        if record is None:
            return 0
        record.mark_committed(block_time)
        self.committed[tx_hash] = record
        log.debug("tx %s get committed at %s", tx_hash, block_time)
        return 1
