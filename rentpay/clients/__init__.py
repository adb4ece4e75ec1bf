from rentpay.clients.mpesa_client import (
    GatewayAuthError,
    GatewayConfigError,
    GatewayConnectionError,
    GatewayError,
    GatewayRequestError,
    MpesaClient,
)

__all__ = [
    "GatewayAuthError",
    "GatewayConfigError",
    "GatewayConnectionError",
    "GatewayError",
    "GatewayRequestError",
    "MpesaClient",
]
