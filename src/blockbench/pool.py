import asyncio
import logging
from collections.abc import Sequence
from dataclasses import dataclass, field

import blockbench.constants as C
from blockbench.client import ChainClient
from blockbench.errors import RpcError
from blockbench.models import BlockTimestamp, SubmissionFailure, TransactionRecord

log = logging.getLogger("blockbench.pool")


@dataclass
class PoolResult:
    records: list[TransactionRecord] = field(default_factory=list)
    failures: list[SubmissionFailure] = field(default_factory=list)

    @property
    def attempted(self) -> int:
        return len(self.records) + len(self.failures)


class SubmissionPool:
    """Submit prepared transactions through a fixed set of workers.

    Workers share a single queue and stop once it is drained. Worker n talks to
    `clients[n % len(clients)]`; by default there is one worker per client.
    Each worker stamps its records with the chain head it last fetched instead
    of asking the node for every submission; the head is refreshed every
    `refresh_every` sends. A failed submission is logged and dropped, and so is
    an item that has no head to stamp it with.
    """

    def __init__(
        self,
        clients: Sequence[ChainClient],
        *,
        workers: int | None = None,
        refresh_every: int = C.REFRESH_EVERY,
    ):
        if not clients:
            raise ValueError("SubmissionPool needs at least one client")
        if refresh_every < 1:
            raise ValueError("refresh_every must be positive")
        if workers is not None and workers < 1:
            raise ValueError("workers must be positive")
        self.clients = list(clients)
        self.workers = workers or len(self.clients)
        self.refresh_every = refresh_every

    async def run(self, payloads: Sequence[dict]) -> PoolResult:
        queue: asyncio.Queue[tuple[int, dict]] = asyncio.Queue()
        for i, payload in enumerate(payloads):
            queue.put_nowait((i, payload))

        async with asyncio.TaskGroup() as tg:
            tasks = [
                tg.create_task(
                    self._worker(n, self.clients[n % len(self.clients)], queue, len(payloads)),
                    name=f"submit_worker_{n}",
                )
                for n in range(self.workers)
            ]

        result = PoolResult()
        for t in tasks:
            records, failures = t.result()
            result.records.extend(records)
            result.failures.extend(failures)
        log.info("send all transactions %d/%d", len(result.records), len(payloads))
        if result.failures:
            log.warning("%d submissions failed", len(result.failures))
        return result

    async def _worker(
        self, n: int, client: ChainClient, queue: asyncio.Queue, total: int
    ) -> tuple[list[TransactionRecord], list[SubmissionFailure]]:
        records: list[TransactionRecord] = []
        failures: list[SubmissionFailure] = []
        head: BlockTimestamp | None = None
        sent = 0
        while True:
            try:
                i, payload = queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            try:
                if head is None or sent % self.refresh_every == 0:
                    try:
                        head = await client.get_tip_header()
                        log.debug("worker %d refreshed head: %s", n, head)
                    except RpcError as e:
                        if head is None:
                            raise
                        log.warning("worker %d head refresh failed, keeping %s: %s", n, head, e)
                sent += 1
                log.debug("worker %d sending tx %d/%d ...", n, i, total)
                tx_hash = await client.send_transaction(payload)
            except Exception as e:
                log.error("worker %d submit tx %d failed: %s: %s", n, i, e.__class__.__name__, e)
                failures.append(SubmissionFailure(index=i, worker=n, reason=e.__class__.__name__, message=str(e)))
                continue
            finally:
                queue.task_done()
            records.append(TransactionRecord(tx_hash=tx_hash, sent_at=head))
        log.debug("worker %d done: %d sent, %d failed", n, len(records), len(failures))
        return records, failures
