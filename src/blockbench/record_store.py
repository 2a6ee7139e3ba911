"""SQLite-backed persistence for the final record collection of a run."""

import logging
import sqlite3
import time
from collections.abc import Iterable
from pathlib import Path

from blockbench.models import BlockTimestamp, TransactionRecord

log = logging.getLogger("blockbench.record_store")


def _ts(bt: BlockTimestamp | None) -> tuple[int | None, int | None]:
    return (bt.number, bt.timestamp) if bt is not None else (None, None)


def _bt(number: int | None, timestamp: int | None) -> BlockTimestamp | None:
    if number is None:
        return None
    return BlockTimestamp(number=number, timestamp=timestamp)


class RecordStore:
    """One file per run. `save` replaces whatever the file held before."""

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = Path(db_path)

    def _init_db(self, conn: sqlite3.Connection) -> None:
        conn.executescript(
            """
            CREATE TABLE IF NOT EXISTS records (
                tx_hash TEXT PRIMARY KEY,
                sent_number INTEGER NOT NULL,
                sent_timestamp INTEGER NOT NULL,
                proposed_number INTEGER,
                proposed_timestamp INTEGER,
                committed_number INTEGER,
                committed_timestamp INTEGER,
                saved_at REAL NOT NULL
            );
            """
        )

    def save(self, records: Iterable[TransactionRecord]) -> int:
        records = list(records)
        conn = sqlite3.connect(self.db_path)
        try:
            self._init_db(conn)
            now = time.time()
            conn.execute("DELETE FROM records")
            conn.executemany(
                "INSERT INTO records VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                [
                    (r.tx_hash, *_ts(r.sent_at), *_ts(r.proposed_at), *_ts(r.committed_at), now)
                    for r in records
                ],
            )
            conn.commit()
            log.info("Saved %d records to %s", len(records), self.db_path)
            return len(records)
        finally:
            conn.close()

    def load(self) -> list[TransactionRecord]:
        if not self.db_path.is_file():
            raise FileNotFoundError(f"no record file at {self.db_path}")
        conn = sqlite3.connect(self.db_path)
        try:
            cursor = conn.execute(
                "SELECT tx_hash, sent_number, sent_timestamp, proposed_number, proposed_timestamp, "
                "committed_number, committed_timestamp FROM records ORDER BY rowid"
            )
            records = [
                TransactionRecord(
                    tx_hash=tx_hash,
                    sent_at=_bt(sn, st),
                    proposed_at=_bt(pn, pt),
                    committed_at=_bt(cn, ct),
                )
                for tx_hash, sn, st, pn, pt, cn, ct in cursor.fetchall()
            ]
            log.debug("Loaded %d records from %s", len(records), self.db_path)
            return records
        finally:
            conn.close()
