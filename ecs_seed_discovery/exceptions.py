"""Custom exception hierarchy for ECS seed discovery."""


class DiscoveryError(Exception):
    """Base exception for all discovery errors."""


class ConfigError(DiscoveryError):
    """Invalid or missing configuration."""


class EcsApiError(DiscoveryError):
    """Error communicating with the ECS API."""

    def __init__(self, message: str, code: str | None = None, request_id: str | None = None):
        super().__init__(message)
        self.code = code
        self.request_id = request_id


class LifecycleError(DiscoveryError):
    """The ECS client was requested before it was configured, or used after release."""


class ResolutionError(DiscoveryError):
    """A discovered address could not be turned into a seed address."""


class MetadataError(DiscoveryError):
    """Error reading from the ECS instance metadata service."""

    def __init__(self, message: str, url: str | None = None):
        super().__init__(message)
        self.url = url


class MetadataNotFoundError(MetadataError):
    """HTTP 404 from the metadata service, the component does not exist."""
