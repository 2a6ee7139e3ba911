"""
conftest.py - Shared fixtures for blockbench tests

Provides an in-memory chain that speaks the ChainClient protocol:
- FakeChain mines one block each time the next height is requested
  (unless auto_mine is off), proposing everything in its mempool and
  committing whatever an earlier block proposed.
- Endpoint wraps a FakeChain as one named connection and logs the calls
  made through it, so several workers can share one chain.
"""

import asyncio
import hashlib
import json

import pytest

from blockbench.errors import SubmissionError
from blockbench.models import Block, BlockTimestamp, Cell, UncleBlock
from blockbench.tracker import short_id

START_MS = 1_600_000_000_000


def tx_hash_of(payload: dict) -> str:
    return "0x" + hashlib.blake2b(json.dumps(payload, sort_keys=True).encode(), digest_size=32).hexdigest()


def make_hash(n: int) -> str:
    return "0x" + hashlib.sha256(str(n).encode()).hexdigest()


def make_block(number, proposals=(), committed=(), uncles=(), timestamp=None) -> Block:
    return Block(
        number=number,
        hash=f"0xblock{number}",
        timestamp=number * 10 if timestamp is None else timestamp,
        proposals=list(proposals),
        committed=list(committed),
        uncles=[UncleBlock(proposals=list(u)) for u in uncles],
    )


class FakeChain:
    def __init__(self, *, tip=10, block_ms=1000, auto_mine=True, cells=None, reject=None):
        self.block_ms = block_ms
        self.auto_mine = auto_mine
        self.reject = reject
        self.cells = cells if cells is not None else []
        self.blocks: dict[int, Block] = {}
        self.mempool: list[str] = []
        self.awaiting_commit: dict[str, int] = {}
        self.payloads: dict[str, dict] = {}
        self.fetched: list[int] = []
        self.tip = -1
        while self.tip < tip:
            self.mine()

    def time_of(self, height: int) -> int:
        return (START_MS + height * self.block_ms) // 1000

    def mine(self) -> Block:
        height = self.tip + 1
        proposals = [short_id(h) for h in self.mempool]
        for h in self.mempool:
            self.awaiting_commit[h] = height
        self.mempool = []
        committed = [h for h, ph in self.awaiting_commit.items() if ph < height]
        for h in committed:
            del self.awaiting_commit[h]
        block = make_block(height, proposals, committed, timestamp=self.time_of(height))
        self.blocks[height] = block
        self.tip = height
        return block

    async def get_block_hash(self, height: int) -> str | None:
        if height == self.tip + 1 and self.auto_mine:
            self.mine()
        block = self.blocks.get(height)
        return block.hash if block else None

    async def get_block(self, block_hash: str) -> Block:
        number = int(block_hash.removeprefix("0xblock"))
        self.fetched.append(number)
        return self.blocks[number]

    async def send_transaction(self, payload: dict) -> str:
        if self.reject is not None and self.reject(payload):
            raise SubmissionError("PoolRejectedTransaction")
        h = tx_hash_of(payload)
        if h in self.payloads:
            raise SubmissionError(f"duplicated transaction {h}")
        self.payloads[h] = payload
        self.mempool.append(h)
        return h

    async def get_tip_header(self) -> BlockTimestamp:
        return BlockTimestamp(number=self.tip, timestamp=self.time_of(self.tip))

    async def get_cells_by_lock_hash(self, lock_hash: str, start: int, end: int) -> list[Cell]:
        return list(self.cells)

    async def system_script_out_point(self) -> dict:
        return {"hash": make_hash(0), "index": 0}


class Endpoint:
    """One named connection onto a shared FakeChain."""

    def __init__(self, chain: FakeChain, name: str):
        self.chain = chain
        self.url = f"fake://{name}"
        self.events: list[tuple[str, object]] = []

    def __getattr__(self, item):
        return getattr(self.chain, item)

    async def get_tip_header(self) -> BlockTimestamp:
        head = await self.chain.get_tip_header()
        self.events.append(("head", head))
        return head

    async def send_transaction(self, payload: dict) -> str:
        # yield like a real round trip so workers interleave
        await asyncio.sleep(0)
        try:
            h = await self.chain.send_transaction(payload)
        except SubmissionError:
            self.events.append(("failed", payload))
            raise
        self.events.append(("sent", h))
        # let the chain move on so later heads differ
        self.chain.mine()
        return h


class ScriptedCursor:
    """BlockCursor stand-in serving a fixed list of blocks."""

    def __init__(self, blocks):
        self.blocks = {b.number: b for b in blocks}
        self.fetched: list[int] = []

    async def fetch(self, height):
        self.fetched.append(height)
        return self.blocks.get(height)


@pytest.fixture
def funding_cell():
    return Cell(out_point={"hash": make_hash(1), "index": 0}, capacity=50000)


@pytest.fixture
def chain(funding_cell):
    return FakeChain(cells=[Cell(out_point={"hash": make_hash(2), "index": 0}, capacity=1000), funding_cell])
