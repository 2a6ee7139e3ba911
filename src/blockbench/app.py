import asyncio
import contextlib
import logging
from collections.abc import Callable, Sequence
from contextlib import asynccontextmanager
from dataclasses import asdict

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel, NonNegativeInt, PositiveInt

from blockbench.bench import RunState, RunStatus, run_benchmark
from blockbench.client import ChainClient, RpcClient
from blockbench.config import Settings, cfg

log = logging.getLogger("blockbench.app")

ClientFactory = Callable[[Settings], Sequence[ChainClient]]


def _rpc_clients(settings: Settings) -> list[ChainClient]:
    return [RpcClient(url, timeout=settings.rpc_timeout) for url in settings.urls]


class StartReq(BaseModel):
    from_height: NonNegativeInt
    count: PositiveInt


def create_app(settings: Settings | None = None, client_factory: ClientFactory = _rpc_clients) -> FastAPI:
    settings = settings or Settings.from_config(cfg)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.run = RunState()
        app.state.task = None
        try:
            yield
        finally:
            task = app.state.task
            if task is not None and not task.done():
                log.info("Shutting down, cancelling running benchmark")
                task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await task

    app = FastAPI(
        title="blockbench",
        lifespan=lifespan,
        openapi_tags=[
            {"name": "Bench", "description": "Start benchmark runs"},
            {"name": "State", "description": "Progress and results"},
        ],
    )

    async def _run(clients: Sequence[ChainClient], req: StartReq, state: RunState) -> None:
        try:
            await run_benchmark(clients, req.from_height, req.count, settings, state=state)
        except Exception:
            log.exception("benchmark run failed")
        finally:
            for c in clients:
                aclose = getattr(c, "aclose", None)
                if aclose is not None:
                    await aclose()

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.post("/bench/start", tags=["Bench"], status_code=202)
    async def bench_start(req: StartReq):
        task = app.state.task
        if task is not None and not task.done():
            raise HTTPException(status_code=409, detail=f"benchmark already running ({app.state.run.status})")
        app.state.run = RunState()
        clients = list(client_factory(settings))
        if not clients:
            raise HTTPException(status_code=503, detail="no RPC endpoints configured")
        app.state.task = asyncio.create_task(_run(clients, req, app.state.run), name="benchmark")
        return {"started": True, "from_height": req.from_height, "count": req.count}

    @app.get("/state/summary", tags=["State"])
    async def state_summary():
        run: RunState = app.state.run
        tracker = run.tracker
        return {
            "status": run.status,
            "error": run.error,
            "height": tracker.height if tracker else None,
            "total_tracked": tracker.total if tracker else 0,
            "by_state": tracker.counts() if tracker else {},
            "failed_submissions": len(run.failures),
        }

    @app.get("/state/failures", tags=["State"])
    async def state_failures():
        return [asdict(f) for f in app.state.run.failures]

    @app.get("/state/report", tags=["State"])
    async def state_report():
        run: RunState = app.state.run
        if run.status is not RunStatus.DONE or run.report is None:
            raise HTTPException(status_code=404, detail="no completed run")
        return {"total": run.report.total, "rows": {k: asdict(v) for k, v in run.report.rows.items()}}

    return app


app = create_app()
