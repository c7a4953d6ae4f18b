"""
Receipt reconstruction from Fabric ledger records.

A receipt is rebuilt from two system chaincode queries: the processed
transaction and the block holding it. The transaction is then decoded
level by level down to the chaincode invocation and its response.
"""
import logging
from typing import Optional, Tuple

from google.protobuf.message import Message

from .config import ProxyConfig
from .exceptions import DecodeError, MissingDataError, UnsupportedTransactionError
from .ledger import records
from .ledger.gateway import LedgerGateway
from .models import TxReceipt
from .utils import is_zero_address

logger = logging.getLogger(__name__)

GET_TRANSACTION_BY_ID = "GetTransactionByID"
GET_BLOCK_BY_TX_ID = "GetBlockByTxID"


def get_payloads(action: Message) -> Tuple[Message, Message]:
    """
    Extract the proposal payload and the chaincode action from a transaction action.

    Only endorser transactions carry these payloads.

    Args:
        action: A decoded TransactionAction

    Returns:
        (ChaincodeProposalPayload, ChaincodeAction)

    Raises:
        DecodeError: If a nested record cannot be parsed
        MissingDataError: If the action or its response extension is missing
    """
    cc_payload = records.decode(records.ChaincodeActionPayload, action.payload)

    if not cc_payload.HasField("action") or not cc_payload.action.proposal_response_payload:
        raise MissingDataError("no payload in ChaincodeActionPayload")

    proposal_payload = records.decode(
        records.ChaincodeProposalPayload, cc_payload.chaincode_proposal_payload
    )
    response_payload = records.decode(
        records.ProposalResponsePayload, cc_payload.action.proposal_response_payload
    )

    if not response_payload.extension:
        raise MissingDataError("response payload is missing extension")

    chaincode_action = records.decode(records.ChaincodeAction, response_payload.extension)
    return proposal_payload, chaincode_action


class ReceiptReconstructor:
    """
    Builds a TxReceipt for a transaction identifier.

    Every step either succeeds or aborts the whole reconstruction; no
    partial receipt is ever produced.
    """

    def __init__(self, config: ProxyConfig):
        self.config = config

    def reconstruct(self, gateway: LedgerGateway, tx_id: str) -> TxReceipt:
        """
        Query the ledger for ``tx_id`` and decode its receipt.

        Args:
            gateway: An open channel context
            tx_id: Transaction identifier as returned by send_transaction

        Returns:
            The receipt

        Raises:
            QueryError: If either system chaincode query fails
            DecodeError: If a record cannot be parsed
            MissingDataError: If a required substructure is absent
            UnsupportedTransactionError: If the transaction is not a single-action
                endorser transaction
        """
        args = [self.config.channel_id.encode(), tx_id.encode()]
        system_cc = self.config.system_chaincode

        logger.debug(f"Querying {system_cc}.{GET_TRANSACTION_BY_ID} for {tx_id}")
        raw_tx = gateway.query(system_cc, GET_TRANSACTION_BY_ID, args)
        processed_tx = records.decode(records.ProcessedTransaction, raw_tx)

        logger.debug(f"Querying {system_cc}.{GET_BLOCK_BY_TX_ID} for {tx_id}")
        raw_block = gateway.query(system_cc, GET_BLOCK_BY_TX_ID, args)
        block = records.decode(records.Block, raw_block)
        if not block.HasField("header"):
            raise MissingDataError(f"block for transaction {tx_id} has no header")

        contract_address = self._contract_address(processed_tx)

        return TxReceipt(
            transactionHash=tx_id,
            blockHash=records.block_header_hash(block.header).hex(),
            blockNumber=str(block.header.number),
            contractAddress=contract_address,
            gasUsed=0,
            cumulativeGasUsed=0,
        )

    def _contract_address(self, processed_tx: Message) -> Optional[str]:
        payload = records.decode(records.Payload, processed_tx.transaction_envelope.payload)

        channel_header = records.decode(records.ChannelHeader, payload.header.channel_header)
        if channel_header.type != records.ENDORSER_TRANSACTION:
            raise UnsupportedTransactionError(
                f"transaction type {channel_header.type} is not an endorser transaction"
            )

        transaction = records.decode(records.Transaction, payload.data)
        if len(transaction.actions) == 0:
            raise MissingDataError("transaction has no actions")
        if len(transaction.actions) > 1:
            raise UnsupportedTransactionError(
                f"transaction has {len(transaction.actions)} actions, only one is supported"
            )

        proposal_payload, chaincode_action = get_payloads(transaction.actions[0])

        invocation = records.decode(records.ChaincodeInvocationSpec, proposal_payload.input)
        args = invocation.chaincode_spec.input.args
        if len(args) == 0:
            raise MissingDataError("chaincode invocation has no arguments")

        # First arg is the callee address; the zero address marks a contract creation
        try:
            callee = bytes.fromhex(args[0].decode("ascii"))
        except (UnicodeDecodeError, ValueError) as e:
            raise DecodeError(f"callee address is not valid hex: {e}") from e

        if not is_zero_address(callee):
            return None

        # Invalid UTF-8 is replaced rather than failing the receipt
        return chaincode_action.response.payload.decode("utf-8", errors="replace")
