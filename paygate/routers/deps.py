import logging
from functools import lru_cache

from fastapi import HTTPException

from ..errors import GatewayConfigError, UnknownGatewayError
from ..providers.base import GatewayAdapter
from ..providers.registry import create_adapter, resolve_gateway_code
from ..settings import settings

logger = logging.getLogger(__name__)


@lru_cache(maxsize=None)
def _adapter_for(code: str) -> GatewayAdapter:
    # adapters are stateless, one per gateway for the process lifetime
    return create_adapter(
        code,
        settings.credentials_for(code),
        is_production=settings.is_production_for(code),
        timeout_sec=settings.HTTP_TIMEOUT_SEC,
        notify_url=settings.notify_url_for(code),
        return_url=settings.RETURN_URL,
    )


def get_adapter(gateway: str) -> GatewayAdapter:
    try:
        return _adapter_for(resolve_gateway_code(gateway))
    except UnknownGatewayError as e:
        raise HTTPException(status_code=404, detail=e.message)
    except GatewayConfigError as e:
        logger.error("gateway %s is misconfigured: %s", gateway, e.message)
        raise HTTPException(status_code=500, detail=e.message)
