"""
Pytest fixtures for the fabproxy tests.
"""
from typing import Optional, Sequence

import pytest

from fabproxy._rate_limited_log import reset_rate_limits
from fabproxy.config import ENV_PREFIX, ProxyConfig
from fabproxy.ledger import records
from fabproxy.ledger.stub_gateway import StubChannelProvider
from fabproxy.service import EthService
from fabproxy.utils import ZERO_ADDRESS_HEX

# Constants for testing
TEST_CHANNEL = "channel1"
TEST_USER = "User1"
TEST_TX_ID = "5f0e3c9a7b1d2e4f6a8c0b1d3e5f7a9c2b4d6e8f0a1c3e5b7d9f1a3c5e7b9d0f"
TEST_CALLEE = "1234567890123456789012345678901234567890"
TEST_CONTRACT_ADDRESS = "0xAABBCCDDEEFF00112233445566778899AABBCCDD"
TEST_BLOCK_NUMBER = 42
TEST_BYTECODE = b"608060405234801561001057600080fd5b50"


def build_processed_transaction(
    callee_hex: str = ZERO_ADDRESS_HEX,
    response_payload: bytes = b"",
    action_count: int = 1,
    tx_type: int = records.ENDORSER_TRANSACTION,
    with_extension: bool = True,
    with_action: bool = True,
    args: Optional[Sequence[bytes]] = None,
) -> bytes:
    """
    Serialize a ProcessedTransaction shaped like an EVM chaincode invocation.

    Args:
        callee_hex: Function name of the invocation, i.e. the callee address
        response_payload: Payload of the chaincode response
        action_count: Number of copies of the action in the transaction
        tx_type: Channel header type
        with_extension: Whether the proposal response carries the chaincode action
        with_action: Whether the action payload carries an endorsed action
        args: Invocation arguments; overrides callee_hex when given
    """
    if args is None:
        args = [callee_hex.encode(), b"6060604052"]

    invocation = records.ChaincodeInvocationSpec(
        chaincode_spec=records.ChaincodeSpec(
            type=1,
            chaincode_id=records.ChaincodeID(name="evmscc"),
            input=records.ChaincodeInput(args=list(args)),
        )
    )
    proposal_payload = records.ChaincodeProposalPayload(input=invocation.SerializeToString())

    chaincode_action = records.ChaincodeAction(
        results=b"rwset",
        response=records.Response(status=200, payload=response_payload),
        chaincode_id=records.ChaincodeID(name="evmscc", version="1.0"),
    )
    response_payload_record = records.ProposalResponsePayload(
        proposal_hash=b"\x01" * 32,
        extension=chaincode_action.SerializeToString() if with_extension else b"",
    )

    action_payload = records.ChaincodeActionPayload(
        chaincode_proposal_payload=proposal_payload.SerializeToString()
    )
    if with_action:
        action_payload.action.proposal_response_payload = response_payload_record.SerializeToString()
        action_payload.action.endorsements.add(endorser=b"peer0", signature=b"sig")

    action = records.TransactionAction(header=b"signature-header", payload=action_payload.SerializeToString())
    transaction = records.Transaction(actions=[action] * action_count)

    channel_header = records.ChannelHeader(type=tx_type, channel_id=TEST_CHANNEL, tx_id=TEST_TX_ID)
    payload = records.Payload(
        header=records.Header(channel_header=channel_header.SerializeToString()),
        data=transaction.SerializeToString(),
    )
    processed = records.ProcessedTransaction(
        transaction_envelope=records.Envelope(payload=payload.SerializeToString(), signature=b"sig"),
        validation_code=0,
    )
    return processed.SerializeToString()


def build_block(number: int = TEST_BLOCK_NUMBER, with_header: bool = True) -> bytes:
    """Serialize a Block holding one opaque transaction"""
    block = records.Block(
        data=records.BlockData(data=[b"envelope"]),
        metadata=records.BlockMetadata(metadata=[b"", b"", b""]),
    )
    if with_header:
        block.header.number = number
        block.header.previous_hash = b"\x11" * 32
        block.header.data_hash = b"\x22" * 32
    return block.SerializeToString()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep FABPROXY_* variables of the developer's shell out of the tests."""
    import os
    for name in list(os.environ):
        if name.startswith(ENV_PREFIX):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _reset_rate_limits():
    reset_rate_limits()
    yield
    reset_rate_limits()


@pytest.fixture
def config():
    return ProxyConfig(channel_id=TEST_CHANNEL, user=TEST_USER)


@pytest.fixture
def provider():
    return StubChannelProvider()


@pytest.fixture
def service(provider, config):
    return EthService(provider, config)


@pytest.fixture
def ledger_with_receipt(provider):
    """
    Register ledger replies for a receipt lookup.

    Returns a function taking the serialized transaction (and optionally the block).
    """
    def _register(raw_tx: bytes, raw_block: Optional[bytes] = None) -> StubChannelProvider:
        provider.reply("qscc", "GetTransactionByID", raw_tx)
        provider.reply("qscc", "GetBlockByTxID", raw_block if raw_block is not None else build_block())
        return provider
    return _register
