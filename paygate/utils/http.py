import asyncio
from typing import Any, Dict, Optional

import httpx

from ..errors import GatewayTransportError

DEFAULT_TIMEOUT_SEC = 15.0


def client(timeout_sec: float = DEFAULT_TIMEOUT_SEC, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(timeout=timeout_sec, transport=transport)


async def post(
    url: str,
    *,
    headers: Dict[str, str],
    timeout_sec: float = DEFAULT_TIMEOUT_SEC,
    transport: Optional[httpx.AsyncBaseTransport] = None,
    **kwargs: Any,
) -> httpx.Response:
    """Single POST, no retries. Transport failures become GatewayTransportError.

    httpx applies ``timeout_sec`` per phase; wait_for caps the whole call.
    """
    try:
        async with client(timeout_sec, transport) as c:
            return await asyncio.wait_for(c.post(url, headers=headers, **kwargs), timeout_sec)
    except (httpx.TimeoutException, asyncio.TimeoutError) as e:
        raise GatewayTransportError("Payment gateway timed out", details={"url": url}) from e
    except httpx.HTTPError as e:
        raise GatewayTransportError(details={"url": url, "reason": str(e)}) from e


def read_json(resp: httpx.Response) -> Dict[str, Any]:
    try:
        js = resp.json()
    except ValueError:
        return {"raw_text": resp.text or ""}
    return js if isinstance(js, dict) else {"raw": js}
