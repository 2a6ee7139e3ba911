import os
import tomllib
from dataclasses import dataclass
from pathlib import Path

import blockbench.constants as C

pkg_root = Path(__file__).parent
config_file = pkg_root / "config.toml"


def load_config(path: str | Path | None = None) -> dict:
    """Read the TOML config and apply environment overrides."""
    conf = tomllib.loads(Path(path or config_file).read_text())
    rpc = conf.setdefault("rpc", {})
    bench = conf.setdefault("bench", {})
    if os.getenv("RPC_URL"):
        rpc["urls"] = [u.strip() for u in os.environ["RPC_URL"].split(",") if u.strip()]
    if os.getenv("RECORD_FILE"):
        bench["record_file"] = os.environ["RECORD_FILE"]
    return conf


def load_servers(path: str | Path) -> list[str]:
    """One endpoint URL per line; blank lines and # comments are skipped."""
    urls = []
    for line in Path(path).read_text().splitlines():
        line = line.split("#", 1)[0].strip()
        if line:
            urls.append(line)
    if not urls:
        raise ValueError(f"no servers listed in {path}")
    return urls


@dataclass
class Settings:
    urls: list[str]
    rpc_timeout: float = C.RPC_TIMEOUT
    workers: int = 0
    refresh_every: int = C.REFRESH_EVERY
    poll_interval: float = C.POLL_INTERVAL
    short_id_length: int = C.SHORT_ID_LENGTH
    funding_span: int = C.FUNDING_SPAN
    record_file: str = C.RECORD_FILE

    @classmethod
    def from_config(cls, conf: dict) -> "Settings":
        rpc, bench = conf.get("rpc", {}), conf.get("bench", {})
        return cls(
            urls=list(rpc.get("urls", [])),
            rpc_timeout=float(rpc.get("timeout", C.RPC_TIMEOUT)),
            workers=int(bench.get("workers", 0)),
            refresh_every=int(bench.get("refresh_every", C.REFRESH_EVERY)),
            poll_interval=float(bench.get("poll_interval", C.POLL_INTERVAL)),
            short_id_length=int(bench.get("short_id_length", C.SHORT_ID_LENGTH)),
            funding_span=int(bench.get("funding_span", C.FUNDING_SPAN)),
            record_file=str(bench.get("record_file", C.RECORD_FILE)),
        )


cfg = load_config()
