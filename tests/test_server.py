"""
Tests for the JSON-RPC HTTP facade.
"""
import pytest
from fastapi.testclient import TestClient

from fabproxy.exceptions import QueryError
from fabproxy.ledger.stub_gateway import StubChannelProvider
from fabproxy.server import (
    INVALID_PARAMS, INVALID_REQUEST, METHOD_NOT_FOUND, PARSE_ERROR, SERVER_ERROR,
    create_app, dispatch, build_methods
)
from fabproxy.service import EthService
from conftest import (
    TEST_CALLEE, TEST_CONTRACT_ADDRESS, TEST_TX_ID, build_block, build_processed_transaction
)


@pytest.fixture
def client(service):
    return TestClient(create_app(service))


def rpc(client, method, params=None, rpc_id=1):
    response = client.post("/", json={"jsonrpc": "2.0", "id": rpc_id, "method": method, "params": params or []})
    assert response.status_code == 200
    return response.json()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_eth_accounts(client, provider):
    provider.reply("evmscc", "account", b"ABCD")

    body = rpc(client, "eth_accounts")

    assert body == {"jsonrpc": "2.0", "id": 1, "result": ["0xabcd"]}


def test_eth_get_code_ignores_block_tag(client, provider):
    provider.reply("evmscc", "getCode", b"6060")

    body = rpc(client, "eth_getCode", ["0x" + TEST_CALLEE, "latest"])

    assert body["result"] == "6060"


def test_eth_call(client, provider):
    provider.reply("evmscc", TEST_CALLEE, b"\x01\x02")

    body = rpc(client, "eth_call", [{"to": "0x" + TEST_CALLEE, "data": "0x1234"}, "latest"])

    assert body["result"] == "0x0102"
    assert provider.calls[0].args == [b"1234"]


def test_eth_send_transaction(client, provider):
    body = rpc(client, "eth_sendTransaction", [{
        "from": "0x" + "11" * 20,
        "gas": "0x76c0",
        "gasPrice": "0x9184e72a000",
        "data": "0x6060",
    }])

    assert isinstance(body["result"], str)
    assert provider.calls[0].function == "0" * 40


def test_eth_get_transaction_receipt_creation(client, provider):
    provider.reply("qscc", "GetTransactionByID",
                   build_processed_transaction(response_payload=TEST_CONTRACT_ADDRESS.encode()))
    provider.reply("qscc", "GetBlockByTxID", build_block(7))

    result = rpc(client, "eth_getTransactionReceipt", [TEST_TX_ID])["result"]

    assert result["transactionHash"] == TEST_TX_ID
    assert result["contractAddress"] == TEST_CONTRACT_ADDRESS
    assert result["blockNumber"] == "7"
    assert result["gasUsed"] == 0
    assert result["cumulativeGasUsed"] == 0
    assert len(result["blockHash"]) == 64


def test_eth_get_transaction_receipt_omits_empty_contract_address(client, provider):
    provider.reply("qscc", "GetTransactionByID", build_processed_transaction(callee_hex=TEST_CALLEE))
    provider.reply("qscc", "GetBlockByTxID", build_block())

    result = rpc(client, "eth_getTransactionReceipt", [TEST_TX_ID])["result"]

    assert "contractAddress" not in result


def test_receipt_error_returns_no_result(client, provider):
    provider.reply("qscc", "GetTransactionByID", build_processed_transaction(action_count=0))
    provider.reply("qscc", "GetBlockByTxID", build_block())

    body = rpc(client, "eth_getTransactionReceipt", [TEST_TX_ID])

    assert "result" not in body
    assert body["error"]["code"] == SERVER_ERROR
    assert body["error"]["data"]["type"] == "MissingDataError"


def test_ledger_error(client, provider):
    provider.reply("evmscc", "getCode", QueryError("chaincode evmscc not found"))

    body = rpc(client, "eth_getCode", [TEST_CALLEE])

    assert body["error"]["code"] == SERVER_ERROR
    assert "not found" in body["error"]["message"]
    assert body["error"]["data"]["type"] == "QueryError"


def test_connection_error_keeps_serving(config):
    """A failed channel acquisition is an error response, not a crash"""
    provider = StubChannelProvider(fail_with=ConnectionRefusedError("peer down"))
    client = TestClient(create_app(EthService(provider, config)))

    body = rpc(client, "eth_accounts")
    assert body["error"]["data"]["type"] == "LedgerConnectionError"

    provider.fail_with = None
    provider.reply("evmscc", "account", b"aa")
    assert rpc(client, "eth_accounts")["result"] == ["0xaa"]


def test_unknown_method(client):
    body = rpc(client, "eth_getBalance", ["0x" + TEST_CALLEE, "latest"])

    assert body["error"]["code"] == METHOD_NOT_FOUND
    assert "eth_getBalance" in body["error"]["message"]


@pytest.mark.parametrize("method,params", [
    ("eth_getCode", []),
    ("eth_getCode", [123]),
    ("eth_call", ["not an object"]),
    ("eth_call", [{"to": TEST_CALLEE}]),
    ("eth_getTransactionReceipt", []),
])
def test_invalid_params(client, method, params):
    body = rpc(client, method, params)

    assert body["error"]["code"] == INVALID_PARAMS


def test_parse_error(client):
    response = client.post("/", content=b"{not json", headers={"Content-Type": "application/json"})

    assert response.json()["error"]["code"] == PARSE_ERROR


def test_invalid_request(client):
    response = client.post("/", json={"jsonrpc": "2.0", "id": 1})

    assert response.json()["error"]["code"] == INVALID_REQUEST


def test_batch(client, provider):
    provider.reply("evmscc", "account", b"aa")
    provider.reply("evmscc", "getCode", b"60")

    response = client.post("/", json=[
        {"jsonrpc": "2.0", "id": 1, "method": "eth_accounts", "params": []},
        {"jsonrpc": "2.0", "id": 2, "method": "eth_getCode", "params": [TEST_CALLEE]},
        {"jsonrpc": "2.0", "method": "eth_accounts", "params": []},
    ])

    assert response.json() == [
        {"jsonrpc": "2.0", "id": 1, "result": ["0xaa"]},
        {"jsonrpc": "2.0", "id": 2, "result": "60"},
    ]


def test_notification_has_no_body(client, provider):
    provider.reply("evmscc", "account", b"aa")

    response = client.post("/", json={"jsonrpc": "2.0", "method": "eth_accounts", "params": []})

    assert response.status_code == 204


@pytest.mark.parametrize("request_body", [
    {"jsonrpc": "2.0", "method": "eth_nope"},
    {"jsonrpc": "2.0", "method": "eth_getCode", "params": []},
    {"jsonrpc": "2.0", "method": "eth_getCode", "params": "not a list"},
    {"jsonrpc": "2.0", "method": "eth_accounts", "params": []},
])
def test_failed_notification_has_no_body(client, request_body):
    """Notifications are never answered, even when they fail"""
    response = client.post("/", json=request_body)

    assert response.status_code == 204
    assert response.content == b""


def test_failed_notifications_are_left_out_of_batch(client, provider):
    provider.reply("evmscc", "account", b"aa")

    response = client.post("/", json=[
        {"jsonrpc": "2.0", "method": "eth_nope"},
        {"jsonrpc": "2.0", "method": "eth_getCode", "params": []},
        {"jsonrpc": "2.0", "id": 3, "method": "eth_accounts", "params": []},
    ])

    assert response.json() == [{"jsonrpc": "2.0", "id": 3, "result": ["0xaa"]}]


def test_dispatch_logs_failed_notification(service, caplog):
    caplog.set_level("WARNING")

    response = dispatch(build_methods(service), {"jsonrpc": "2.0", "method": "eth_nope"})

    assert response is None
    assert any("eth_nope" in msg for msg in caplog.messages)


def test_null_id_is_not_a_notification(client):
    body = rpc(client, "eth_nope", rpc_id=None)

    assert body["id"] is None
    assert body["error"]["code"] == METHOD_NOT_FOUND


def test_cors_preflight(client):
    response = client.options("/", headers={
        "Origin": "http://localhost:3000",
        "Access-Control-Request-Method": "POST",
    })

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"


def test_cors_restricted_origins(service):
    client = TestClient(create_app(service, cors_origins=["http://localhost:3000"]))

    response = client.options("/", headers={
        "Origin": "http://evil.example.com",
        "Access-Control-Request-Method": "POST",
    })

    assert "access-control-allow-origin" not in response.headers


def test_dispatch_null_params(service, provider):
    provider.reply("evmscc", "account", b"aa")

    response = dispatch(build_methods(service), {"jsonrpc": "2.0", "id": 9, "method": "eth_accounts", "params": None})

    assert response == {"jsonrpc": "2.0", "id": 9, "result": ["0xaa"]}
