"""Latency and throughput statistics over completed transaction records."""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from blockbench.models import TransactionRecord


@dataclass(frozen=True, slots=True)
class Summary:
    """Distribution of one series of timestamps or delays.

    Any value may be None when it is undefined for the input, e.g. throughput
    over a zero-length window or the 20% buckets of fewer than five samples.
    """

    count: int
    average: float | None = None
    median: float | None = None
    fastest20: float | None = None
    slowest20: float | None = None
    throughput: float | None = None


@dataclass(frozen=True, slots=True)
class Report:
    total: int
    rows: dict[str, Summary] = field(default_factory=dict)


ROWS = ("proposed", "committed", "proposal delay", "commit delay")


def _mean(values: Sequence[float]) -> float | None:
    return sum(values) / len(values) if values else None


def summarize(values: Iterable[float], window: float | None) -> Summary:
    t = sorted(values)
    n = len(t)
    if not n:
        return Summary(count=0)
    fifth = n // 5
    # median is the element at n // 2, no interpolation for even counts
    return Summary(
        count=n,
        average=sum(t) / n,
        median=t[n // 2],
        fastest20=_mean(t[:fifth]),
        slowest20=_mean(t[-fifth:]) if fifth else None,
        throughput=n / window if window else None,
    )


def _window(end: Iterable[int], start: int | None) -> float | None:
    end = list(end)
    if not end or start is None:
        return None
    w = max(end) - start
    return w if w > 0 else None


def compute_statistics(records: Iterable[TransactionRecord]) -> Report:
    records = list(records)
    earliest_send = min((r.sent_at.timestamp for r in records), default=None)
    proposed = [r for r in records if r.proposed_at is not None]
    committed = [r for r in records if r.committed_at is not None]

    proposed_ts = [r.proposed_at.timestamp for r in proposed]
    committed_ts = [r.committed_at.timestamp for r in committed]
    proposed_window = _window(proposed_ts, earliest_send)
    committed_window = _window(committed_ts, earliest_send)

    return Report(
        total=len(records),
        rows={
            "proposed": summarize(proposed_ts, proposed_window),
            "committed": summarize(committed_ts, committed_window),
            "proposal delay": summarize(
                [r.proposed_at.timestamp - r.sent_at.timestamp for r in proposed], proposed_window
            ),
            "commit delay": summarize(
                [r.committed_at.timestamp - r.sent_at.timestamp for r in committed], committed_window
            ),
        },
    )


def _fmt(value: float | None) -> str:
    return "undefined" if value is None else f"{value:.2f}"


def render_report(report: Report) -> str:
    header = "{:<16}{:>8}{:>16}{:>16}{:>16}{:>16}{:>12}".format(
        "", "count", "average", "median", "fastest 20%", "slowest 20%", "tx/s"
    )
    lines = [f"Total: {report.total}", header, "-" * len(header)]
    for name in ROWS:
        s = report.rows.get(name)
        if s is None:
            continue
        lines.append(
            "{:<16}{:>8}{:>16}{:>16}{:>16}{:>16}{:>12}".format(
                name,
                s.count,
                _fmt(s.average),
                _fmt(s.median),
                _fmt(s.fastest20),
                _fmt(s.slowest20),
                _fmt(s.throughput),
            )
        )
    return "\n".join(lines)
