"""
HTTP implementation of the ledger gateway.

Talks to a REST bridge in front of the Fabric network. The bridge owns
credentials, endorsement and ordering; this module only forwards the
chaincode call:

    POST {base}/channels/{channel}/chaincodes/{chaincode}/query
    POST {base}/channels/{channel}/chaincodes/{chaincode}/invoke

with a JSON body ``{"user": ..., "fcn": ..., "args": [base64, ...]}``.
A query answers ``{"result": base64}``, an invoke ``{"txId": ...}``.
"""
import base64
import logging
import urllib.parse
from typing import Any, Dict, Optional, Sequence

import requests

from .._rate_limited_log import rate_limited_log
from ..config import validate_gateway_url
from ..exceptions import InvokeError, LedgerConnectionError, QueryError
from .gateway import ChannelProvider, LedgerGateway

logger = logging.getLogger(__name__)


class RestLedgerGateway(LedgerGateway):
    """Channel context backed by its own HTTP session"""

    def __init__(
        self,
        base_url: str,
        channel_id: str,
        user: str,
        session: requests.Session,
        timeout: Optional[float] = None
    ):
        self.base_url = base_url
        self.channel_id = channel_id
        self.user = user
        self.session = session
        self.timeout = timeout

    def _url(self, chaincode_id: str, operation: str) -> str:
        channel = urllib.parse.quote(self.channel_id, safe="")
        chaincode = urllib.parse.quote(chaincode_id, safe="")
        return f"{self.base_url}/channels/{channel}/chaincodes/{chaincode}/{operation}"

    def _post(self, chaincode_id: str, operation: str, function: str, args: Sequence[bytes]) -> Dict[str, Any]:
        body = {
            "user": self.user,
            "fcn": function,
            "args": [base64.b64encode(arg).decode("ascii") for arg in args],
        }
        response = self.session.post(
            self._url(chaincode_id, operation),
            json=body,
            timeout=self.timeout
        )
        response.raise_for_status()

        content_type = response.headers.get("Content-Type", "")
        if "application/json" not in content_type:
            logger.warning(f"Unexpected Content-Type: {content_type} (expected application/json)")

        result = response.json()
        if not isinstance(result, dict):
            raise ValueError(f"expected a JSON object, got {type(result).__name__}")
        return result

    def _describe(self, e: Exception) -> str:
        if isinstance(e, requests.HTTPError) and e.response is not None:
            detail = e.response.text.strip()
            return f"HTTP {e.response.status_code}: {detail or e.response.reason}"
        return str(e)

    def query(self, chaincode_id: str, function: str, args: Sequence[bytes]) -> bytes:
        try:
            result = self._post(chaincode_id, "query", function, args)
            if "result" not in result:
                raise ValueError(f"missing result in bridge response: {result}")
            return base64.b64decode(result["result"] or "", validate=True)
        except requests.ConnectionError as e:
            rate_limited_log(f"Ledger bridge {self.base_url} unreachable: {e}", level="error", logger_instance=logger)
            raise QueryError(f"Ledger bridge unreachable: {e}", chaincode_id, function) from e
        except (requests.RequestException, ValueError) as e:
            raise QueryError(
                f"Query {chaincode_id}.{function} failed: {self._describe(e)}", chaincode_id, function
            ) from e

    def invoke(self, chaincode_id: str, function: str, args: Sequence[bytes]) -> str:
        try:
            result = self._post(chaincode_id, "invoke", function, args)
            tx_id = result.get("txId")
            if not tx_id:
                raise ValueError(f"missing txId in bridge response: {result}")
            return str(tx_id)
        except requests.ConnectionError as e:
            rate_limited_log(f"Ledger bridge {self.base_url} unreachable: {e}", level="error", logger_instance=logger)
            raise InvokeError(f"Ledger bridge unreachable: {e}", chaincode_id, function) from e
        except (requests.RequestException, ValueError) as e:
            raise InvokeError(
                f"Invoke {chaincode_id}.{function} failed: {self._describe(e)}", chaincode_id, function
            ) from e

    def close(self) -> None:
        self.session.close()


class RestChannelProvider(ChannelProvider):
    """
    Opens RestLedgerGateway channel contexts.

    No retry adapter is mounted: every failure goes straight back to the caller.
    """

    def __init__(self, base_url: str, timeout: Optional[float] = None):
        """
        Args:
            base_url: Root URL of the ledger bridge
            timeout: Per-request timeout in seconds (None leaves it to the bridge)

        Raises:
            ValueError: If the URL is invalid or insecure
        """
        validate_gateway_url(base_url)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def open_channel(self, channel_id: str, user: str) -> LedgerGateway:
        if not channel_id:
            raise LedgerConnectionError("channel id must not be empty")
        if not user:
            raise LedgerConnectionError("user must not be empty")

        session = requests.Session()
        session.headers.update({"Accept": "application/json"})
        logger.debug(f"Opened channel {channel_id} for {user} via {self.base_url}")
        return RestLedgerGateway(self.base_url, channel_id, user, session, self.timeout)
