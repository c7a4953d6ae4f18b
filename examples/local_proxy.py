#!/usr/bin/env python3
"""
Simple example of using fabproxy against an in-memory ledger.
"""
import json

from fastapi.testclient import TestClient

from fabproxy import EthService, ProxyConfig
from fabproxy.ledger import StubChannelProvider
from fabproxy.server import create_app


def main():
    """
    Demonstrate the JSON-RPC facade without a Fabric network.

    This example shows how to:
    1. Register canned chaincode replies on a stub ledger
    2. Build the HTTP app around an EthService
    3. Send Ethereum JSON-RPC requests to it
    """
    provider = StubChannelProvider()
    provider.reply("evmscc", "account", b"5E2E0C7E14E4A5DC9F4BE68B4BA1BA3A9F4C1D2E")
    provider.reply("evmscc", "getCode", b"6080604052")

    app = create_app(EthService(provider, ProxyConfig()))
    client = TestClient(app)

    for method, params in [
        ("eth_accounts", []),
        ("eth_getCode", ["0x1234567890123456789012345678901234567890", "latest"]),
        ("eth_sendTransaction", [{"data": "0x6080604052"}]),
    ]:
        response = client.post("/", json={"jsonrpc": "2.0", "id": 1, "method": method, "params": params})
        print(f"{method}: {json.dumps(response.json(), indent=2)}")

    print("\nLedger calls:")
    for call in provider.calls:
        print(f"  {call.kind} {call.chaincode_id}.{call.function} args={call.args}")


if __name__ == "__main__":
    main()
