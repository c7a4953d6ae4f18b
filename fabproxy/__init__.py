"""
fabproxy - Ethereum JSON-RPC facade for an EVM chaincode on Hyperledger Fabric.
"""
from .version import __version__
from .config import ProxyConfig, load_config
from .exceptions import (
    FabProxyError, LedgerConnectionError, QueryError, InvokeError,
    DecodeError, MissingDataError, UnsupportedTransactionError
)
from .models import CallParams, TxReceipt
from .receipt import ReceiptReconstructor
from .service import EthService
from .utils import ZERO_ADDRESS, strip_0x, is_zero_address, to_display

__all__ = [
    "EthService",
    "ReceiptReconstructor",
    "CallParams",
    "TxReceipt",
    "ProxyConfig",
    "load_config",
    "FabProxyError",
    "LedgerConnectionError",
    "QueryError",
    "InvokeError",
    "DecodeError",
    "MissingDataError",
    "UnsupportedTransactionError",
    "ZERO_ADDRESS",
    "strip_0x",
    "is_zero_address",
    "to_display",
    "__version__",
]
