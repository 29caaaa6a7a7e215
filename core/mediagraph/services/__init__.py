"""External service adapters."""

from mediagraph.services.client import HttpServiceClient, ServiceClient

__all__ = ["HttpServiceClient", "ServiceClient"]
