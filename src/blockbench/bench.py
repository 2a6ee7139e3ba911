"""Benchmark driver: fund, submit, track, persist, report."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import StrEnum
from pathlib import Path

from blockbench import txn_builder
from blockbench.client import ChainClient
from blockbench.config import Settings
from blockbench.errors import FundingError
from blockbench.models import SubmissionFailure, TransactionRecord
from blockbench.pool import PoolResult, SubmissionPool
from blockbench.record_store import RecordStore
from blockbench.stats import Report, compute_statistics
from blockbench.tracker import BlockCursor, LifecycleTracker

log = logging.getLogger("blockbench.bench")

__all__ = [
    "FundingOutputs",
    "RunState",
    "RunStatus",
    "compute_statistics",
    "prepare_funding",
    "run_benchmark",
    "run_stat",
    "submit_benchmark_set",
    "track_and_wait_all",
]


class RunStatus(StrEnum):
    IDLE       = "IDLE"
    FUNDING    = "FUNDING"
    SUBMITTING = "SUBMITTING"
    TRACKING   = "TRACKING"
    DONE       = "DONE"
    FAILED     = "FAILED"


@dataclass
class FundingOutputs:
    """The outputs of a funding transaction, each one spendable by a benchmark tx."""

    tx_hash: str
    count: int
    capacity: int
    lock_id: str
    deps: list[dict]


@dataclass
class RunState:
    """What a running benchmark exposes to observers such as the status API."""

    status: RunStatus = RunStatus.IDLE
    tracker: LifecycleTracker | None = None
    report: Report | None = None
    failures: list[SubmissionFailure] = field(default_factory=list)
    error: str | None = None


async def prepare_funding(
    client: ChainClient, start_height: int, count: int, *, lock_id: str, span: int = 100
) -> tuple[TransactionRecord, FundingOutputs]:
    cell = await txn_builder.find_funding_cell(client, start_height, span)
    if cell is None:
        raise FundingError(f"can't find cellbase in {start_height}..{start_height + span}")
    log.info("spend: %s", cell)
    capacity = txn_builder.per_output_capacity(cell, count)
    deps = [await client.system_script_out_point()]
    tx = txn_builder.funding_transaction(cell, count, lock_id, deps)

    tip = await client.get_tip_header()
    tx_hash = await client.send_transaction(tx)
    record = TransactionRecord(tx_hash=tx_hash, sent_at=tip)
    return record, FundingOutputs(tx_hash=tx_hash, count=count, capacity=capacity, lock_id=lock_id, deps=deps)


async def submit_benchmark_set(
    clients: Sequence[ChainClient],
    outputs: FundingOutputs,
    count: int,
    *,
    workers: int | None = None,
    refresh_every: int = 100,
) -> PoolResult:
    if count > outputs.count:
        raise FundingError(f"asked for {count} txs but funding produced {outputs.count} outputs")
    payloads = txn_builder.benchmark_transactions(outputs.tx_hash, count, outputs.capacity, outputs.lock_id, outputs.deps)
    return await SubmissionPool(clients, workers=workers, refresh_every=refresh_every).run(payloads)


async def track_and_wait_all(tracker: LifecycleTracker) -> tuple[TransactionRecord, ...]:
    log.info("wait all txs get confirmed ... (%d tracked)", tracker.total)
    await tracker.wait_for_all()
    return tracker.committed_records()


async def run_benchmark(
    clients: Sequence[ChainClient],
    start_height: int,
    count: int,
    settings: Settings,
    *,
    state: RunState | None = None,
) -> Report:
    state = state or RunState()
    primary = clients[0]
    try:
        tip = await primary.get_tip_header()
        tracker = LifecycleTracker(
            BlockCursor(clients),
            tip.number,
            poll_interval=settings.poll_interval,
            short_id_length=settings.short_id_length,
        )
        state.tracker = tracker

        state.status = RunStatus.FUNDING
        lock_id = txn_builder.random_lock_id()
        log.info("generate random lock_id: %s", lock_id)
        log.info("prepare %d benchmark cells from height %d", count, start_height)
        funding, outputs = await prepare_funding(
            primary, start_height, count, lock_id=lock_id, span=settings.funding_span
        )
        tracker.register(funding.tx_hash, funding)
        log.info("wait prepare tx get confirmed ... %s", funding)
        await tracker.wait_for(funding.tx_hash)

        state.status = RunStatus.SUBMITTING
        log.info("start sending %d txs...", count)
        result = await submit_benchmark_set(
            clients, outputs, count, workers=settings.workers or None, refresh_every=settings.refresh_every
        )
        state.failures = result.failures
        for record in result.records:
            tracker.register(record.tx_hash, record)

        state.status = RunStatus.TRACKING
        await track_and_wait_all(tracker)
        # the funding tx is tracked too but isn't part of the benchmark set
        records = result.records

        log.info("complete, saving ...")
        RecordStore(settings.record_file).save(records)
        log.info("statistics ...")
        state.report = compute_statistics(records)
        state.status = RunStatus.DONE
        return state.report
    except Exception as e:
        state.status = RunStatus.FAILED
        state.error = f"{e.__class__.__name__}: {e}"
        raise


def run_stat(path: str | Path) -> Report:
    """Recompute statistics from a saved record file without touching the chain."""
    return compute_statistics(RecordStore(path).load())
