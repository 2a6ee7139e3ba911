import hashlib
import logging
import secrets
from collections.abc import Sequence

import blockbench.constants as C
from blockbench.client import ChainClient
from blockbench.errors import FundingError
from blockbench.models import Cell

log = logging.getLogger("blockbench.txn")


def blake2b_256(*parts: bytes) -> bytes:
    h = hashlib.blake2b(digest_size=32, person=b"ckb-default-hash")
    for p in parts:
        h.update(p)
    return h.digest()


def hex_to_bin(value: str) -> bytes:
    return bytes.fromhex(value[2:] if value.startswith("0x") else value)


def bin_to_hex(value: bytes) -> str:
    return "0x" + value.hex()


def random_lock_id() -> str:
    return "0x" + secrets.token_hex(16)


def always_success_lock(args: Sequence[str] = ()) -> dict:
    return {"binary_hash": C.ALWAYS_SUCCESS, "args": list(args)}


def always_success_lock_hash(args: Sequence[str] = ()) -> str:
    """Type hash of the always-success lock: blake2b over code hash then each arg."""
    return bin_to_hex(blake2b_256(hex_to_bin(C.ALWAYS_SUCCESS), *(hex_to_bin(a) for a in args)))


async def find_funding_cell(client: ChainClient, start: int, span: int = C.FUNDING_SPAN) -> Cell | None:
    """First always-success cellbase output with the funding capacity in [start, start + span]."""
    cells = await client.get_cells_by_lock_hash(always_success_lock_hash(), start, start + span)
    return next((c for c in cells if c.capacity == C.FUNDING_CAPACITY), None)


def _input(previous_output: dict) -> dict:
    return {"previous_output": previous_output, "args": [], "valid_since": "0"}


def _output(capacity: int, data: str, lock_id: str) -> dict:
    return {
        "capacity": str(capacity),
        "data": bin_to_hex(data.encode()),
        "lock": always_success_lock([lock_id]),
    }


def per_output_capacity(cell: Cell, count: int) -> int:
    if count < 1:
        raise FundingError(f"need at least one benchmark transaction, got {count}")
    if cell.capacity < count:
        raise FundingError(f"txs too large, txs: {count}, cellbase capacity: {cell.capacity}")
    return cell.capacity // count


def funding_transaction(cell: Cell, count: int, lock_id: str, deps: Sequence[dict]) -> dict:
    """Split a funding cell into `count` equally sized benchmark inputs."""
    cap = per_output_capacity(cell, count)
    return {
        "version": 0,
        "deps": list(deps),
        "inputs": [_input(cell.out_point)],
        "outputs": [_output(cap, f"prepare_tx{i}", lock_id) for i in range(count)],
    }


def benchmark_transactions(
    funding_hash: str, count: int, capacity: int, lock_id: str, deps: Sequence[dict]
) -> list[dict]:
    """One transaction per funding output, each moving the whole output."""
    return [
        {
            "version": 0,
            "deps": list(deps),
            "inputs": [_input({"hash": funding_hash, "index": i})],
            "outputs": [_output(capacity, f"tx{i}", lock_id)],
        }
        for i in range(count)
    ]
