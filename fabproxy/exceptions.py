"""
Exceptions for the fabproxy package.
"""


class FabProxyError(Exception):
    """Base exception for all fabproxy errors."""
    pass


class LedgerConnectionError(FabProxyError):
    """Raised when a channel context to the ledger cannot be obtained."""
    pass


class QueryError(FabProxyError):
    """Raised when the ledger rejects or fails a chaincode query."""

    def __init__(self, message: str, chaincode_id: str = "", function: str = ""):
        self.chaincode_id = chaincode_id
        self.function = function
        super().__init__(message)


class InvokeError(FabProxyError):
    """Raised when the ledger rejects or fails a chaincode invocation."""

    def __init__(self, message: str, chaincode_id: str = "", function: str = ""):
        self.chaincode_id = chaincode_id
        self.function = function
        super().__init__(message)


class DecodeError(FabProxyError):
    """Raised when a serialized ledger record fails to parse."""
    pass


class MissingDataError(FabProxyError):
    """Raised when a required ledger substructure is absent or empty."""
    pass


class UnsupportedTransactionError(FabProxyError):
    """Raised for transactions whose shape cannot be turned into a receipt."""
    pass
