from fanaan.providers.base import BaseProvider, EndpointKind
from fanaan.providers.registry import provider_registry

__all__ = ["BaseProvider", "EndpointKind", "provider_registry"]
