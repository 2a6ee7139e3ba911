import argparse
import asyncio
import logging
import sys
from pathlib import Path

from blockbench.bench import run_benchmark, run_stat
from blockbench.client import RpcClient
from blockbench.config import Settings, cfg, load_servers
from blockbench.errors import BenchError
from blockbench.logging_config import setup_logging
from blockbench.stats import render_report

log = logging.getLogger("blockbench.cli")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="blockbench")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Fund, send and track a benchmark set.")
    run.add_argument("from_height", type=int, help="Height to start searching for a funding cell.")
    run.add_argument("count", type=int, help="Number of benchmark transactions.")
    run.add_argument("-s", "--servers", type=Path, help="File listing RPC endpoints, one per line.")
    run.add_argument("-w", "--workers", type=int, help="Submission workers (default: one per endpoint).")
    run.add_argument("-r", "--records", type=Path, help="Where to save the tx records.")

    stat = sub.add_parser("stat", help="Print statistics of a saved record file.")
    stat.add_argument("records", type=Path, nargs="?", help="Record file (defaults to the configured one).")

    serve = sub.add_parser("serve", help="Run the status API.")
    serve.add_argument("--host", default=cfg.get("server", {}).get("host", "0.0.0.0"))
    serve.add_argument("--port", type=int, default=cfg.get("server", {}).get("port", 8000))
    return parser.parse_args(argv)


async def _run(settings: Settings, from_height: int, count: int):
    clients = [RpcClient(url, timeout=settings.rpc_timeout) for url in settings.urls]
    try:
        return await run_benchmark(clients, from_height, count, settings)
    finally:
        for c in clients:
            await c.aclose()


def main(argv=None) -> int:
    args = parse_args(argv)
    setup_logging()
    settings = Settings.from_config(cfg)

    if args.command == "serve":
        import uvicorn

        uvicorn.run("blockbench.app:app", host=args.host, port=args.port, lifespan="on")
        return 0

    if args.command == "stat":
        report = run_stat(args.records or settings.record_file)
        print(render_report(report))
        return 0

    if args.servers is not None:
        settings.urls = load_servers(args.servers)
    if args.workers is not None:
        if args.workers < 1:
            log.error("--workers must be positive")
            return 1
        settings.workers = args.workers
    if args.records is not None:
        settings.record_file = str(args.records)
    if not settings.urls:
        log.error("no RPC endpoints configured")
        return 1
    log.info("benchmarking against %d endpoint(s): %s", len(settings.urls), ", ".join(settings.urls))
    try:
        report = asyncio.run(_run(settings, args.from_height, args.count))
    except BenchError as e:
        log.error("benchmark failed: %s: %s", e.__class__.__name__, e)
        return 1
    print(render_report(report))
    return 0


if __name__ == "__main__":
    sys.exit(main())
