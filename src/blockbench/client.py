import asyncio
import itertools
import logging
from typing import Protocol

import httpx

import blockbench.constants as C
from blockbench.errors import RpcError, SubmissionError
from blockbench.models import Block, BlockTimestamp, Cell

log = logging.getLogger("blockbench.client")


class ChainClient(Protocol):
    url: str

    async def get_block_hash(self, height: int) -> str | None: ...
    async def get_block(self, block_hash: str) -> Block: ...
    async def send_transaction(self, payload: dict) -> str: ...
    async def get_tip_header(self) -> BlockTimestamp: ...
    async def get_cells_by_lock_hash(self, lock_hash: str, start: int, end: int) -> list[Cell]: ...
    async def system_script_out_point(self) -> dict: ...


class RpcClient:
    """JSON-RPC client for one node endpoint.

    Targets the node RPC that takes block numbers and cell ranges as decimal
    strings. Responses are read in either the nested or the flat block layout
    (see Block.from_rpc), but requests always use the decimal encoding.
    """

    def __init__(self, url: str, *, timeout: float = C.RPC_TIMEOUT, http: httpx.AsyncClient | None = None):
        self.url = url
        self.timeout = timeout
        self._http = http or httpx.AsyncClient(timeout=timeout)
        self._ids = itertools.count(1)
        self._system_out_point: dict | None = None

    async def __aenter__(self) -> "RpcClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    def __repr__(self):
        return f"RpcClient({self.url!r})"

    async def call(self, method: str, *params):
        payload = {"jsonrpc": "2.0", "id": next(self._ids), "method": method, "params": list(params)}
        try:
            r = await asyncio.wait_for(self._http.post(self.url, json=payload), timeout=self.timeout)
            r.raise_for_status()
            body = r.json()
        except (httpx.HTTPError, asyncio.TimeoutError, ValueError) as e:
            raise RpcError(f"{method} to {self.url} failed: {e.__class__.__name__}: {e}") from e
        if not isinstance(body, dict):
            raise RpcError(f"{method} to {self.url}: expected a JSON-RPC object, got {type(body).__name__}")

        err = body.get("error")
        if isinstance(err, dict):
            raise RpcError(f"{method}: {err.get('message', err)}", code=err.get("code"))
        if err:
            raise RpcError(f"{method}: {err}")
        return body.get("result")

    async def get_block_hash(self, height: int) -> str | None:
        return await self.call("get_block_hash", str(height))

    async def get_block(self, block_hash: str) -> Block:
        result = await self.call("get_block", block_hash)
        if result is None:
            raise RpcError(f"block {block_hash} vanished from {self.url}")
        return Block.from_rpc(result)

    async def send_transaction(self, payload: dict) -> str:
        try:
            tx_hash = await self.call("send_transaction", payload)
        except RpcError as e:
            raise SubmissionError(str(e), code=e.code) from e
        if not isinstance(tx_hash, str):
            raise SubmissionError(f"send_transaction returned {tx_hash!r}")
        return tx_hash

    async def get_tip_header(self) -> BlockTimestamp:
        return BlockTimestamp.from_header(await self.call("get_tip_header"))

    async def get_cells_by_lock_hash(self, lock_hash: str, start: int, end: int) -> list[Cell]:
        cells = await self.call("get_cells_by_lock_hash", lock_hash, str(start), str(end))
        return [Cell.from_rpc(c) for c in cells or []]

    async def system_script_out_point(self) -> dict:
        """Out point of the system script cell: first output of the genesis cellbase."""
        if self._system_out_point is None:
            genesis = await self.call("get_block", await self.get_block_hash(0))
            txs = genesis.get("transactions", genesis.get("commit_transactions", []))
            if not txs:
                raise RpcError(f"genesis block on {self.url} has no transactions")
            self._system_out_point = {"hash": txs[0]["hash"], "index": 0}
        return self._system_out_point
