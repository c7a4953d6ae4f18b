"""
Protocol buffer definitions for the Fabric ledger records the proxy decodes.

Only the fields the proxy reads (plus the ones needed to build realistic
records) are declared; the parser skips any other field on the wire. The
field numbers follow Fabric's ``common`` and ``peer`` protos.
"""
import hashlib
import logging
from typing import Dict, List, Optional, Tuple, Type, TypeVar

from google.protobuf import descriptor_pb2, descriptor_pool, message_factory
from google.protobuf.message import DecodeError as ProtoDecodeError, Message

from ..exceptions import DecodeError

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=Message)

_F = descriptor_pb2.FieldDescriptorProto

_PACKAGE = "fabproxy.records"

# ChannelHeader.type value for chaincode transactions
ENDORSER_TRANSACTION = 3

# (name, number, type, label, message type name)
_FieldSpec = Tuple[str, int, int, int, Optional[str]]


def _bytes(name: str, number: int) -> _FieldSpec:
    return (name, number, _F.TYPE_BYTES, _F.LABEL_OPTIONAL, None)


def _repeated_bytes(name: str, number: int) -> _FieldSpec:
    return (name, number, _F.TYPE_BYTES, _F.LABEL_REPEATED, None)


def _scalar(name: str, number: int, field_type: int) -> _FieldSpec:
    return (name, number, field_type, _F.LABEL_OPTIONAL, None)


def _message(name: str, number: int, type_name: str, repeated: bool = False) -> _FieldSpec:
    label = _F.LABEL_REPEATED if repeated else _F.LABEL_OPTIONAL
    return (name, number, _F.TYPE_MESSAGE, label, type_name)


_MESSAGES: Dict[str, List[_FieldSpec]] = {
    # common/common.proto
    "Envelope": [_bytes("payload", 1), _bytes("signature", 2)],
    "Header": [_bytes("channel_header", 1), _bytes("signature_header", 2)],
    "ChannelHeader": [
        _scalar("type", 1, _F.TYPE_INT32),
        _scalar("version", 2, _F.TYPE_INT32),
        _scalar("channel_id", 4, _F.TYPE_STRING),
        _scalar("tx_id", 5, _F.TYPE_STRING),
        _scalar("epoch", 6, _F.TYPE_UINT64),
        _bytes("extension", 7),
    ],
    "Payload": [_message("header", 1, "Header"), _bytes("data", 2)],
    "BlockHeader": [
        _scalar("number", 1, _F.TYPE_UINT64),
        _bytes("previous_hash", 2),
        _bytes("data_hash", 3),
    ],
    "BlockData": [_repeated_bytes("data", 1)],
    "BlockMetadata": [_repeated_bytes("metadata", 1)],
    "Block": [
        _message("header", 1, "BlockHeader"),
        _message("data", 2, "BlockData"),
        _message("metadata", 3, "BlockMetadata"),
    ],
    # peer/transaction.proto
    "ProcessedTransaction": [
        _message("transaction_envelope", 1, "Envelope"),
        _scalar("validation_code", 2, _F.TYPE_INT32),
    ],
    "TransactionAction": [_bytes("header", 1), _bytes("payload", 2)],
    "Transaction": [_message("actions", 1, "TransactionAction", repeated=True)],
    "Endorsement": [_bytes("endorser", 1), _bytes("signature", 2)],
    "ChaincodeEndorsedAction": [
        _bytes("proposal_response_payload", 1),
        _message("endorsements", 2, "Endorsement", repeated=True),
    ],
    "ChaincodeActionPayload": [
        _bytes("chaincode_proposal_payload", 1),
        _message("action", 2, "ChaincodeEndorsedAction"),
    ],
    # peer/proposal.proto and peer/proposal_response.proto
    "ChaincodeProposalPayload": [_bytes("input", 1)],
    "ProposalResponsePayload": [_bytes("proposal_hash", 1), _bytes("extension", 2)],
    "Response": [
        _scalar("status", 1, _F.TYPE_INT32),
        _scalar("message", 2, _F.TYPE_STRING),
        _bytes("payload", 3),
    ],
    "ChaincodeAction": [
        _bytes("results", 1),
        _bytes("events", 2),
        _message("response", 3, "Response"),
        _message("chaincode_id", 4, "ChaincodeID"),
    ],
    # peer/chaincode.proto
    "ChaincodeID": [
        _scalar("path", 1, _F.TYPE_STRING),
        _scalar("name", 2, _F.TYPE_STRING),
        _scalar("version", 3, _F.TYPE_STRING),
    ],
    "ChaincodeInput": [_repeated_bytes("args", 1)],
    "ChaincodeSpec": [
        _scalar("type", 1, _F.TYPE_INT32),
        _message("chaincode_id", 2, "ChaincodeID"),
        _message("input", 3, "ChaincodeInput"),
        _scalar("timeout", 4, _F.TYPE_INT32),
    ],
    "ChaincodeInvocationSpec": [_message("chaincode_spec", 1, "ChaincodeSpec")],
}


def _build_file_descriptor() -> descriptor_pb2.FileDescriptorProto:
    file_proto = descriptor_pb2.FileDescriptorProto(
        name="fabproxy/records.proto",
        package=_PACKAGE,
        syntax="proto3",
    )
    for message_name, fields in _MESSAGES.items():
        message_proto = file_proto.message_type.add(name=message_name)
        for name, number, field_type, label, type_name in fields:
            field = message_proto.field.add(name=name, number=number, type=field_type, label=label)
            if type_name:
                field.type_name = f".{_PACKAGE}.{type_name}"
    return file_proto


_pool = descriptor_pool.DescriptorPool()
_pool.AddSerializedFile(_build_file_descriptor().SerializeToString())


def _message_class(name: str) -> Type[Message]:
    return message_factory.GetMessageClass(_pool.FindMessageTypeByName(f"{_PACKAGE}.{name}"))


Envelope = _message_class("Envelope")
Header = _message_class("Header")
ChannelHeader = _message_class("ChannelHeader")
Payload = _message_class("Payload")
BlockHeader = _message_class("BlockHeader")
BlockData = _message_class("BlockData")
BlockMetadata = _message_class("BlockMetadata")
Block = _message_class("Block")
ProcessedTransaction = _message_class("ProcessedTransaction")
TransactionAction = _message_class("TransactionAction")
Transaction = _message_class("Transaction")
Endorsement = _message_class("Endorsement")
ChaincodeEndorsedAction = _message_class("ChaincodeEndorsedAction")
ChaincodeActionPayload = _message_class("ChaincodeActionPayload")
ChaincodeProposalPayload = _message_class("ChaincodeProposalPayload")
ProposalResponsePayload = _message_class("ProposalResponsePayload")
Response = _message_class("Response")
ChaincodeAction = _message_class("ChaincodeAction")
ChaincodeID = _message_class("ChaincodeID")
ChaincodeInput = _message_class("ChaincodeInput")
ChaincodeSpec = _message_class("ChaincodeSpec")
ChaincodeInvocationSpec = _message_class("ChaincodeInvocationSpec")


def decode(message_class: Type[M], data: bytes) -> M:
    """
    Parse ``data`` into a new ``message_class`` instance.

    Args:
        message_class: One of the record classes of this module
        data: Serialized record

    Returns:
        The decoded message

    Raises:
        DecodeError: If the bytes are not a valid encoding of the record
    """
    message = message_class()
    try:
        message.ParseFromString(data)
    except ProtoDecodeError as e:
        name = message_class.DESCRIPTOR.name
        logger.debug(f"Failed to decode {name} from {len(data)} bytes: {e}")
        raise DecodeError(f"Failed to decode {name}: {e}") from e
    return message


def _der_length(length: int) -> bytes:
    if length < 0x80:
        return bytes([length])
    encoded = length.to_bytes((length.bit_length() + 7) // 8, "big")
    return bytes([0x80 | len(encoded)]) + encoded


def _der(tag: int, content: bytes) -> bytes:
    return bytes([tag]) + _der_length(len(content)) + content


def _der_integer(value: int) -> bytes:
    # Minimal two's complement; the extra bit keeps non-negative values positive
    return _der(0x02, value.to_bytes(value.bit_length() // 8 + 1, "big"))


def block_header_bytes(header: Message) -> bytes:
    """
    DER encoding of a block header: SEQUENCE { number, previous_hash, data_hash }.

    This is the preimage Fabric hashes to obtain the block hash.
    """
    return _der(
        0x30,
        _der_integer(header.number)
        + _der(0x04, header.previous_hash)
        + _der(0x04, header.data_hash),
    )


def block_header_hash(header: Message) -> bytes:
    """SHA-256 of the DER-encoded block header"""
    return hashlib.sha256(block_header_bytes(header)).digest()
