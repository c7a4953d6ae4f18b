"""
JSON-RPC 2.0 HTTP facade for EthService.

A single POST endpoint at ``/`` accepts single or batched requests for the
supported ``eth_*`` methods. Ledger calls block, so dispatch runs in the
thread pool and concurrent requests do not wait on each other.
"""
import json
import logging
from typing import Any, Callable, Dict, List, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from .exceptions import FabProxyError
from .models import CallParams
from .service import EthService
from .version import __version__

logger = logging.getLogger(__name__)

PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603
SERVER_ERROR = -32000


class InvalidParamsError(ValueError):
    """Raised when RPC params do not match the method signature"""
    pass


def _param(params: List[Any], index: int, name: str) -> Any:
    if len(params) <= index:
        raise InvalidParamsError(f"missing parameter: {name}")
    return params[index]


def _string_param(params: List[Any], index: int, name: str) -> str:
    value = _param(params, index, name)
    if not isinstance(value, str):
        raise InvalidParamsError(f"{name} must be a string")
    return value


def _call_params(params: List[Any]) -> CallParams:
    value = _param(params, 0, "transaction object")
    if not isinstance(value, dict):
        raise InvalidParamsError("transaction object must be a JSON object")
    return CallParams.model_validate(value)


def build_methods(service: EthService) -> Dict[str, Callable[[List[Any]], Any]]:
    """
    Map JSON-RPC method names to handlers taking the positional params.

    Trailing block tags (``"latest"``) sent by Ethereum tooling are ignored.
    """
    def get_receipt(params: List[Any]) -> Dict[str, Any]:
        receipt = service.get_transaction_receipt(_string_param(params, 0, "transaction hash"))
        return receipt.model_dump(by_alias=True, exclude_none=True)

    return {
        "eth_getCode": lambda params: service.get_code(_string_param(params, 0, "address")),
        "eth_call": lambda params: service.call(_call_params(params)),
        "eth_sendTransaction": lambda params: service.send_transaction(_call_params(params)),
        "eth_getTransactionReceipt": get_receipt,
        "eth_accounts": lambda params: service.accounts(),
    }


def _error(rpc_id: Any, code: int, message: str, data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    error: Dict[str, Any] = {"code": code, "message": message}
    if data:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": rpc_id, "error": error}


def dispatch(methods: Dict[str, Callable[[List[Any]], Any]], body: Any) -> Optional[Dict[str, Any]]:
    """
    Handle one JSON-RPC request object.

    Returns:
        The response object, or None for a notification (no ``id``).
        Notifications get no reply even when they fail; failures are logged.
    """
    if not isinstance(body, dict) or not isinstance(body.get("method"), str):
        return _error(None, INVALID_REQUEST, "Invalid Request")

    is_notification = "id" not in body
    rpc_id = body.get("id")
    method = body["method"]

    def reply(response: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        if is_notification:
            if "error" in response:
                logger.warning(f"Notification {method} failed: {response['error']['message']}")
            return None
        return response

    params = body.get("params", [])
    if params is None:
        params = []
    if not isinstance(params, list):
        return reply(_error(rpc_id, INVALID_PARAMS, "params must be an array"))

    handler = methods.get(method)
    if handler is None:
        return reply(_error(rpc_id, METHOD_NOT_FOUND, f"Method not found: {method}"))

    logger.debug(f"Received a request for {method}")
    try:
        result = handler(params)
    except (InvalidParamsError, ValidationError) as e:
        return reply(_error(rpc_id, INVALID_PARAMS, f"Invalid params: {e}"))
    except FabProxyError as e:
        logger.error(f"{method} failed: {e}")
        return reply(_error(rpc_id, SERVER_ERROR, str(e), {"type": type(e).__name__}))
    except Exception as e:
        logger.error(f"Unexpected error in {method}: {e}", exc_info=True)
        return reply(_error(rpc_id, INTERNAL_ERROR, f"Internal error: {e}"))

    return reply({"jsonrpc": "2.0", "id": rpc_id, "result": result})


def create_app(service: EthService, cors_origins: Optional[List[str]] = None) -> FastAPI:
    """
    Build the FastAPI application serving ``service``.

    Args:
        service: The EthService to expose
        cors_origins: Allowed CORS origins (all origins by default)

    Returns:
        FastAPI application
    """
    app = FastAPI(title="fabproxy Ethereum JSON-RPC", version=__version__)
    methods = build_methods(service)

    origins = cors_origins if cors_origins is not None else ["*"]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials="*" not in origins,
        allow_methods=["POST", "OPTIONS"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health():
        return {"status": "ok", "version": __version__}

    @app.post("/")
    async def rpc_handler(request: Request):
        raw = await request.body()
        try:
            body = json.loads(raw)
        except (ValueError, UnicodeDecodeError):
            return JSONResponse(_error(None, PARSE_ERROR, "Parse error"))

        if isinstance(body, list):
            if not body:
                return JSONResponse(_error(None, INVALID_REQUEST, "Invalid Request"))
            responses = []
            for item in body:
                response = await run_in_threadpool(dispatch, methods, item)
                if response is not None:
                    responses.append(response)
            if not responses:
                return Response(status_code=204)
            return JSONResponse(responses)

        response = await run_in_threadpool(dispatch, methods, body)
        if response is None:
            return Response(status_code=204)
        return JSONResponse(response)

    return app
