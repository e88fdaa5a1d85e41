from typing import Any, Dict, Optional


class GatewayError(Exception):
    """Base error for the gateway layer."""

    error_code: str = "GATEWAY_ERROR"
    message: str = "Payment gateway error"

    def __init__(
        self,
        message: Optional[str] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message or self.__class__.message
        self.error_code = error_code or self.__class__.error_code
        self.details = details or {}
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(error_code={self.error_code!r}, message={self.message!r})"


class UnknownGatewayError(GatewayError):
    """No adapter is registered for the gateway code."""

    error_code = "UNKNOWN_GATEWAY"
    message = "Unknown payment gateway"


class GatewayConfigError(GatewayError):
    """Adapter cannot be built from the supplied credentials."""

    error_code = "GATEWAY_CONFIG"
    message = "Payment gateway is not configured"


class GatewayTransportError(GatewayError):
    """Outbound call failed before a usable response arrived."""

    error_code = "GATEWAY_TRANSPORT"
    message = "Payment gateway unreachable"
