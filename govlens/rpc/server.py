"""
govlens JSON-RPC 2.0 Server

Dispatches JSON-RPC 2.0 requests (single, batch and notifications) to the
``@rpc_method`` handlers of registered modules. govlens exceptions raised by
a handler are mapped onto error codes; the HTTP transport lives in
``govlens.api``.
"""

import asyncio
import inspect
import json
from enum import IntEnum
from typing import Any, Callable, Dict, List, Optional, Union

from ..exceptions import (
    ConfigurationError,
    DecodingError,
    DomainError,
    GovLensException,
    MalformedResponseError,
    TransactionError,
    UpstreamError,
)
from ..logger import get_logger

logger = get_logger(__name__)

JSONRPC_VERSION = '2.0'

RPCMethod = Callable[..., Any]


class RPCErrorCode(IntEnum):
    PARSE_ERROR = -32700
    INVALID_REQUEST = -32600
    METHOD_NOT_FOUND = -32601
    INVALID_PARAMS = -32602
    INTERNAL_ERROR = -32603

    # Implementation-defined server errors
    SERVER_ERROR = -32000
    RESOURCE_UNAVAILABLE = -32002
    TRANSACTION_REJECTED = -32003


# govlens failure -> error code, most specific first
_EXCEPTION_CODES = (
    (UpstreamError, RPCErrorCode.RESOURCE_UNAVAILABLE),
    (DomainError, RPCErrorCode.INVALID_PARAMS),
    (TransactionError, RPCErrorCode.TRANSACTION_REJECTED),
    (MalformedResponseError, RPCErrorCode.SERVER_ERROR),
    (DecodingError, RPCErrorCode.SERVER_ERROR),
    (ConfigurationError, RPCErrorCode.SERVER_ERROR),
)


class RPCError(Exception):
    """An error object to return to the caller."""

    def __init__(self, code: int, message: str, data: Any = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.data = data

    def to_dict(self) -> dict:
        error = {"code": int(self.code), "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error

    @classmethod
    def from_exception(cls, exc: GovLensException) -> "RPCError":
        code = next(
            (code for exc_type, code in _EXCEPTION_CODES if isinstance(exc, exc_type)),
            RPCErrorCode.INTERNAL_ERROR,
        )
        return cls(code, str(exc), {"type": type(exc).__name__})


def rpc_method(func: RPCMethod) -> RPCMethod:
    """Mark a module coroutine as callable over JSON-RPC as ``<namespace>_<name>``."""
    func.__rpc_method__ = True
    return func


class RPCModule:
    """Base class for a method namespace such as ``gov``."""

    namespace: str = ""

    def __init__(self, context: Any = None):
        self.context = context

    def get_methods(self) -> Dict[str, RPCMethod]:
        prefix = f"{self.namespace}_" if self.namespace else ""
        return {
            prefix + name: method
            for name, method in inspect.getmembers(self, callable)
            if not name.startswith("_") and getattr(method, "__rpc_method__", False)
        }


def _reply(request_id: Any, result: Any = None, error: Optional[RPCError] = None) -> dict:
    reply = {"jsonrpc": JSONRPC_VERSION, "id": request_id}
    if error is not None:
        reply["error"] = error.to_dict()
    else:
        reply["result"] = result
    return reply


class RPCServer:
    """Method registry and request dispatcher."""

    def __init__(self):
        self._methods: Dict[str, RPCMethod] = {}

    def register_module(self, module: RPCModule):
        methods = module.get_methods()
        self._methods.update(methods)
        logger.info(f"Registered RPC module: {module.namespace} ({len(methods)} methods)")

    def get_methods(self) -> List[str]:
        return sorted(self._methods)

    async def handle_request(self, data: Union[str, bytes, dict, list]) -> Optional[str]:
        """
        Handle a raw request body or an already-parsed object.

        Returns:
            The JSON response, or None when every request was a notification.
        """
        if isinstance(data, (str, bytes)):
            try:
                data = json.loads(data)
            except ValueError as e:
                return json.dumps(_reply(None, error=RPCError(RPCErrorCode.PARSE_ERROR, f"Parse error: {e}")))

        if not isinstance(data, list):
            reply = await self._dispatch(data)
            return None if reply is None else json.dumps(reply)

        if not data:
            return json.dumps(_reply(None, error=RPCError(RPCErrorCode.INVALID_REQUEST, "Empty batch")))
        replies = [r for r in await asyncio.gather(*(self._dispatch(item) for item in data)) if r is not None]
        return json.dumps(replies) if replies else None

    async def _dispatch(self, request: Any) -> Optional[dict]:
        if not isinstance(request, dict):
            return _reply(None, error=RPCError(RPCErrorCode.INVALID_REQUEST, "Invalid request"))

        request_id = request.get("id")
        method = request.get("method")
        params = request.get("params")
        notification = request_id is None

        if request.get("jsonrpc", JSONRPC_VERSION) != JSONRPC_VERSION:
            return _reply(request_id, error=RPCError(RPCErrorCode.INVALID_REQUEST, "Invalid JSON-RPC version"))
        if not method:
            return _reply(request_id, error=RPCError(RPCErrorCode.INVALID_REQUEST, "Missing method"))

        handler = self._methods.get(method)
        if handler is None:
            if notification:
                return None
            return _reply(request_id, error=RPCError(RPCErrorCode.METHOD_NOT_FOUND, f"Method not found: {method}"))

        try:
            if params is None:
                result = await handler()
            elif isinstance(params, list):
                result = await handler(*params)
            elif isinstance(params, dict):
                result = await handler(**params)
            else:
                raise RPCError(RPCErrorCode.INVALID_PARAMS, "Invalid params type")
        except RPCError as e:
            error = e
        except GovLensException as e:
            logger.warning(f"{method} failed: {type(e).__name__}: {e}")
            error = RPCError.from_exception(e)
        except (TypeError, ValueError) as e:
            error = RPCError(RPCErrorCode.INVALID_PARAMS, f"Invalid params: {e}")
        except Exception as e:
            logger.exception(f"Error handling RPC method {method}")
            error = RPCError(RPCErrorCode.INTERNAL_ERROR, str(e))
        else:
            return None if notification else _reply(request_id, result)

        return None if notification else _reply(request_id, error=error)
