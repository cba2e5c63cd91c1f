"""Minimal JSON-RPC 2.0 transport over httpx."""

import itertools
import logging
from typing import Any, Dict, List, Optional

import httpx

from ..errors import AuthorityError, AuthorityErrorCode


logger = logging.getLogger(__name__)

_request_ids = itertools.count(1)


async def rpc_call(
    client: httpx.AsyncClient,
    url: str,
    method: str,
    params: List[Any],
    extra: Optional[Dict[str, Any]] = None,
) -> Any:
    """
    Make a JSON-RPC call and return its result.

    Transport failures and JSON-RPC errors are both raised as AuthorityError;
    transport failures use the EIP-1193 "disconnected" code.
    """
    payload: Dict[str, Any] = {
        "jsonrpc": "2.0",
        "method": method,
        "params": params,
        "id": next(_request_ids),
    }
    if extra:
        payload.update(extra)

    try:
        response = await client.post(url, json=payload)
        response.raise_for_status()
        body = response.json()
    except httpx.HTTPStatusError as e:
        raise AuthorityError(
            AuthorityErrorCode.DISCONNECTED,
            f"{method}: HTTP {e.response.status_code}",
        ) from e
    except httpx.HTTPError as e:
        raise AuthorityError(AuthorityErrorCode.DISCONNECTED, f"{method}: {e}") from e
    except ValueError as e:
        raise AuthorityError(AuthorityErrorCode.INTERNAL_ERROR, f"{method}: invalid JSON response") from e

    if body.get("error"):
        error = body["error"]
        logger.debug("RPC error from %s: %s", method, error)
        raise AuthorityError(
            int(error.get("code", AuthorityErrorCode.INTERNAL_ERROR)),
            error.get("message", "RPC error"),
            error.get("data"),
        )

    return body.get("result")
