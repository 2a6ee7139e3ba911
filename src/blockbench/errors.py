class BenchError(Exception):
    """Base class for benchmark failures."""


class RpcError(BenchError):
    """A JSON-RPC call failed, either in transport or with an error object."""

    def __init__(self, message: str, code: int | None = None):
        super().__init__(message)
        self.code = code


class SubmissionError(RpcError):
    """The node refused or never answered a send_transaction call."""


class FundingError(BenchError):
    """Not enough funding capacity to build the requested benchmark set."""


class InternalConsistencyError(BenchError):
    """Tracker bookkeeping contradicts itself. Never retryable."""


class DuplicateRegistrationError(InternalConsistencyError):
    pass
