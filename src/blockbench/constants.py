from typing import Final
from enum import StrEnum

# Code hash of the always-success lock script deployed in the dev chain genesis
ALWAYS_SUCCESS: Final = "0x0000000000000000000000000000000000000000000000000000000000000001"

# Cellbase outputs used as funding allocations carry exactly this capacity
FUNDING_CAPACITY: Final = 50000


class TxState(StrEnum):
    PENDING   = "PENDING"
    PROPOSED  = "PROPOSED"
    COMMITTED = "COMMITTED"


# "0x" + 10 byte proposal short id
SHORT_ID_LENGTH = 22
POLL_INTERVAL = 3.0  # seconds to back off when the next block isn't there yet
REFRESH_EVERY = 100  # submissions between head refreshes in a worker
FUNDING_SPAN = 100  # blocks searched for a funding cell
RPC_TIMEOUT = 10.0
RECORD_FILE = "tx_records"

__all__ = [
    "ALWAYS_SUCCESS",
    "FUNDING_CAPACITY",
    "FUNDING_SPAN",
    "POLL_INTERVAL",
    "RECORD_FILE",
    "REFRESH_EVERY",
    "RPC_TIMEOUT",
    "SHORT_ID_LENGTH",

    ######
    "TxState",
]
