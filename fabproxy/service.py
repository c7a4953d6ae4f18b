"""
EthService - translates Ethereum JSON-RPC methods into ledger calls.
"""
import logging
from typing import List, Optional, Sequence

from .config import ProxyConfig
from .exceptions import DecodeError, FabProxyError, InvokeError, QueryError
from .ledger.gateway import ChannelProvider, LedgerGateway
from .models import CallParams, TxReceipt
from .receipt import ReceiptReconstructor
from .utils import ZERO_ADDRESS_HEX, strip_0x, to_display

GET_CODE = "getCode"
ACCOUNT = "account"


class EthService:
    """
    Ethereum RPC methods served by an EVM chaincode on a Fabric channel.

    Every method opens its own channel context and closes it before
    returning. Nothing is shared between calls apart from the read-only
    configuration, so instances are safe to use from several threads.

    Calls go straight to the ledger: no retries, no caching, and
    send_transaction does not wait for the transaction to commit, so an
    immediate receipt lookup may fail until the block lands.
    """

    def __init__(
        self,
        provider: ChannelProvider,
        config: Optional[ProxyConfig] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the service

        Args:
            provider: Source of channel contexts
            config: Channel, user and chaincode names (defaults to ProxyConfig())
            logger: Optional logger instance to use for debug/info logging
        """
        self.provider = provider
        self.config = config or ProxyConfig()
        self.logger = logger or logging.getLogger(__name__)
        self.reconstructor = ReceiptReconstructor(self.config)

    def _channel(self):
        return self.provider.channel(self.config.channel_id, self.config.user)

    def _query(self, gateway: LedgerGateway, function: str, args: Sequence[bytes]) -> bytes:
        chaincode_id = self.config.evm_chaincode
        self.logger.debug(f"Querying {chaincode_id}.{function}")
        try:
            return gateway.query(chaincode_id, function, args)
        except FabProxyError as e:
            self.logger.error(f"Failed to query {chaincode_id}.{function}: {e}")
            raise
        except Exception as e:
            self.logger.error(f"Unexpected error querying {chaincode_id}.{function}: {e}")
            raise QueryError(f"Query failed: {str(e)}", chaincode_id, function) from e

    def get_code(self, address: str) -> str:
        """
        Get the runtime bytecode stored at ``address``.

        Args:
            address: Contract address, hex with or without 0x

        Returns:
            The chaincode reply as text, without a 0x prefix
        """
        with self._channel() as gateway:
            value = self._query(gateway, GET_CODE, [strip_0x(address).encode()])
        return _as_text(value, "getCode result")

    def call(self, params: CallParams) -> str:
        """
        Execute a read-only contract call.

        Args:
            params: Call object; ``to`` names the contract, ``data`` the input

        Returns:
            The call output as 0x-prefixed hex
        """
        self.logger.debug(f"Call data: {params.data}")
        to = params.to or ZERO_ADDRESS_HEX
        with self._channel() as gateway:
            value = self._query(gateway, strip_0x(to), [strip_0x(params.data).encode()])
        return to_display(value)

    def send_transaction(self, params: CallParams) -> str:
        """
        Submit a transaction to the EVM chaincode.

        An empty ``to`` targets the zero address, which the chaincode treats
        as a contract deployment of ``data``.

        Args:
            params: Transaction object

        Returns:
            The ledger transaction identifier

        Raises:
            InvokeError: If the ledger rejects the submission
            LedgerConnectionError: If no channel context can be obtained
        """
        chaincode_id = self.config.evm_chaincode
        function = strip_0x(params.to or ZERO_ADDRESS_HEX)
        self.logger.debug(f"Transaction data: {params.data}")

        with self._channel() as gateway:
            try:
                tx_id = gateway.invoke(chaincode_id, function, [strip_0x(params.data).encode()])
            except FabProxyError as e:
                self.logger.error(f"Failed to execute transaction: {e}")
                raise
            except Exception as e:
                self.logger.error(f"Unexpected error executing transaction: {e}")
                raise InvokeError(f"Transaction failed: {str(e)}", chaincode_id, function) from e

        self.logger.info(f"Transaction sent: {tx_id}")
        return tx_id

    def get_transaction_receipt(self, tx_id: str) -> TxReceipt:
        """
        Rebuild the receipt of a committed transaction.

        Args:
            tx_id: Transaction identifier returned by send_transaction

        Returns:
            The receipt
        """
        with self._channel() as gateway:
            try:
                receipt = self.reconstructor.reconstruct(gateway, tx_id)
            except FabProxyError as e:
                self.logger.error(f"Failed to build receipt for {tx_id}: {e}")
                raise
            except Exception as e:
                self.logger.error(f"Unexpected error building receipt for {tx_id}: {e}")
                raise QueryError(f"Receipt lookup failed: {str(e)}") from e

        self.logger.debug(f"Receipt for {tx_id}: {receipt}")
        return receipt

    def accounts(self) -> List[str]:
        """
        List the account of the configured ledger identity.

        Returns:
            A single-element list holding the 0x-prefixed lowercase address
        """
        with self._channel() as gateway:
            value = self._query(gateway, ACCOUNT, [])
        return ["0x" + _as_text(value, "account").lower()]


def _as_text(value: bytes, what: str) -> str:
    try:
        return value.decode("utf-8")
    except UnicodeDecodeError as e:
        raise DecodeError(f"{what} is not valid text: {e}") from e
