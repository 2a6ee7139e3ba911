"""
test_txn_builder.py - Funding and benchmark transaction payloads
"""

import asyncio
import hashlib

import pytest

import blockbench.constants as C
from blockbench import txn_builder
from blockbench.errors import FundingError
from blockbench.models import Cell

from conftest import FakeChain

DEPS = [{"hash": "0x00", "index": 0}]


class TestLock:
    def test_lock_hash_is_blake2b_of_code_hash_and_args(self):
        h = hashlib.blake2b(digest_size=32, person=b"ckb-default-hash")
        h.update(bytes.fromhex(C.ALWAYS_SUCCESS[2:]))
        assert txn_builder.always_success_lock_hash() == "0x" + h.hexdigest()

    def test_args_change_the_hash(self):
        assert txn_builder.always_success_lock_hash(["0x01"]) != txn_builder.always_success_lock_hash()

    def test_random_lock_id(self):
        a, b = txn_builder.random_lock_id(), txn_builder.random_lock_id()
        assert a != b
        assert a.startswith("0x") and len(a) == 34


class TestFundingCell:
    def test_picks_cell_with_funding_capacity(self, chain, funding_cell):
        assert asyncio.run(txn_builder.find_funding_cell(chain, 0)) == funding_cell

    def test_none_when_no_cell_matches(self):
        chain = FakeChain(cells=[Cell(out_point={"hash": "0x02", "index": 0}, capacity=10)])
        assert asyncio.run(txn_builder.find_funding_cell(chain, 0)) is None


class TestTransactions:
    def test_funding_splits_capacity(self, funding_cell):
        tx = txn_builder.funding_transaction(funding_cell, 3, "0xab", DEPS)
        assert tx["inputs"] == [{"previous_output": funding_cell.out_point, "args": [], "valid_since": "0"}]
        assert [o["capacity"] for o in tx["outputs"]] == ["16666"] * 3
        assert tx["outputs"][0]["lock"] == {"binary_hash": C.ALWAYS_SUCCESS, "args": ["0xab"]}
        assert tx["outputs"][1]["data"] == "0x" + b"prepare_tx1".hex()
        assert tx["deps"] == DEPS

    def test_funding_shortage(self):
        cell = Cell(out_point={"hash": "0x01", "index": 0}, capacity=5)
        with pytest.raises(FundingError):
            txn_builder.funding_transaction(cell, 6, "0xab", DEPS)
        with pytest.raises(FundingError):
            txn_builder.per_output_capacity(cell, 0)

    def test_benchmark_spends_each_output(self):
        txs = txn_builder.benchmark_transactions("0xfund", 4, 100, "0xab", DEPS)
        assert [t["inputs"][0]["previous_output"] for t in txs] == [{"hash": "0xfund", "index": i} for i in range(4)]
        assert all(t["outputs"][0]["capacity"] == "100" for t in txs)
        assert len({t["outputs"][0]["data"] for t in txs}) == 4
