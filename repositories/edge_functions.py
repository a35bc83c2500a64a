"""
Edge function client.

Supabase edge functions are invoked as
``POST {SUPABASE_URL}/functions/v1/<name>`` with a bearer key and a JSON
body. Their implementations (payments, WhatsApp delivery) are opaque; this
module only carries the request/response contract.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

import httpx

from repositories.client import edge_function_key, edge_function_timeout, supabase_url

logger = logging.getLogger(__name__)

ORDER_NOTIFICATION = "order-notification"
CREATE_PAYMENT_LINK = "create-payment-link"
VENDOR_REPLY = "vendor-reply-v2"


class EdgeFunctionError(RuntimeError):
    """Raised when an edge function cannot be reached or returns a non-JSON body."""


@dataclass(frozen=True, slots=True)
class EdgeFunctionResponse:
    status_code: int
    body: Dict[str, Any]

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300


def edge_function_url(name: str) -> str:
    return f"{supabase_url()}/functions/v1/{name}"


def invoke_edge_function(
    name: str,
    payload: Mapping[str, Any],
    *,
    timeout: Optional[float] = None,
) -> EdgeFunctionResponse:
    """
    POST `payload` to the named edge function and return status + JSON body.

    Non-2xx responses are returned, not raised: callers read the body's
    ``error`` field. Transport failures raise EdgeFunctionError.
    """

    headers = {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {edge_function_key()}",
    }
    url = edge_function_url(name)

    try:
        response = httpx.post(
            url,
            json=dict(payload),
            headers=headers,
            timeout=timeout if timeout is not None else edge_function_timeout(),
        )
    except httpx.TimeoutException as exc:
        raise EdgeFunctionError(f"Edge function {name} timed out") from exc
    except httpx.HTTPError as exc:
        raise EdgeFunctionError(f"Edge function {name} request failed: {exc}") from exc

    try:
        body = response.json()
    except ValueError as exc:
        raise EdgeFunctionError(
            f"Edge function {name} returned a non-JSON body (status {response.status_code})"
        ) from exc

    if not response.is_success:
        logger.warning(
            "Edge function returned an error status",
            extra={"edge_function": name, "status_code": response.status_code},
        )

    return EdgeFunctionResponse(
        status_code=response.status_code,
        body=body if isinstance(body, dict) else {"data": body},
    )


__all__ = [
    "CREATE_PAYMENT_LINK",
    "EdgeFunctionError",
    "EdgeFunctionResponse",
    "ORDER_NOTIFICATION",
    "VENDOR_REPLY",
    "edge_function_url",
    "invoke_edge_function",
]
