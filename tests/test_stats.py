"""
test_stats.py - Latency statistics and report rendering
"""

import pytest

from blockbench.models import BlockTimestamp, TransactionRecord
from blockbench.stats import ROWS, compute_statistics, render_report, summarize


def bt(ts, number=None):
    return BlockTimestamp(number=ts if number is None else number, timestamp=ts)


class TestSummarize:
    def test_five_samples(self):
        s = summarize([50, 10, 40, 20, 30], window=10)
        assert s.count == 5
        assert s.average == 30
        assert s.median == 30
        assert s.fastest20 == 10
        assert s.slowest20 == 50
        assert s.throughput == 0.5

    def test_even_count_median_is_upper_middle(self):
        assert summarize([1, 2, 3, 4], window=1).median == 3

    def test_twenty_percent_buckets(self):
        s = summarize(range(1, 11), window=5)
        assert s.fastest20 == 1.5
        assert s.slowest20 == 9.5

    def test_zero_window_is_undefined(self):
        s = summarize([10, 20], window=0)
        assert s.throughput is None
        assert s.average == 15

    def test_fewer_than_five_samples(self):
        s = summarize([7], window=None)
        assert s.median == 7
        assert s.fastest20 is None and s.slowest20 is None

    def test_empty(self):
        s = summarize([], window=3)
        assert s.count == 0
        assert s.average is None and s.throughput is None


class TestComputeStatistics:
    def records(self):
        return [
            TransactionRecord(tx_hash="0x01", sent_at=bt(100), proposed_at=bt(103), committed_at=bt(106)),
            TransactionRecord(tx_hash="0x02", sent_at=bt(100), proposed_at=bt(104), committed_at=bt(110)),
            TransactionRecord(tx_hash="0x03", sent_at=bt(102), proposed_at=bt(105)),
            TransactionRecord(tx_hash="0x04", sent_at=bt(102)),
        ]

    def test_rows(self):
        report = compute_statistics(self.records())
        assert report.total == 4
        assert set(report.rows) == set(ROWS)

        proposed = report.rows["proposed"]
        assert proposed.count == 3
        assert proposed.median == 104
        assert proposed.throughput == pytest.approx(3 / 5)

        committed = report.rows["committed"]
        assert committed.count == 2
        assert committed.average == 108
        assert committed.throughput == pytest.approx(2 / 10)

        assert report.rows["proposal delay"].average == pytest.approx((3 + 4 + 3) / 3)
        assert report.rows["commit delay"].median == 10

    def test_same_block_window_is_undefined(self):
        report = compute_statistics(
            [TransactionRecord(tx_hash="0x01", sent_at=bt(5), proposed_at=bt(5), committed_at=bt(5))]
        )
        assert report.rows["committed"].throughput is None
        assert "undefined" in render_report(report)

    def test_no_records(self):
        report = compute_statistics([])
        assert report.total == 0
        assert all(s.count == 0 for s in report.rows.values())


class TestRenderReport:
    def test_fixed_columns(self):
        text = render_report(compute_statistics(TestComputeStatistics().records()))
        lines = text.splitlines()
        assert lines[0] == "Total: 4"
        body = lines[3:]
        assert [line[:16].strip() for line in body] == list(ROWS)
        assert len({len(line) for line in body}) == 1
