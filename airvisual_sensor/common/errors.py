from enum import StrEnum


class AirVisualError(Exception):
    """Base class for every error raised by the sensor pipeline."""


class ConfigurationError(AirVisualError):
    """Accessory configuration cannot be used (e.g. missing API key)."""


class ProviderErrorKind(StrEnum):
    CALL_LIMIT_REACHED = "call_limit_reached"
    API_KEY_EXPIRED = "api_key_expired"
    INCORRECT_API_KEY = "incorrect_api_key"
    IP_LOCATION_FAILED = "ip_location_failed"
    NO_NEAREST_STATION = "no_nearest_station"
    FEATURE_NOT_AVAILABLE = "feature_not_available"
    TOO_MANY_REQUESTS = "too_many_requests"
    UNKNOWN_STATUS = "unknown_status"


PROVIDER_ERROR_MESSAGES: dict[ProviderErrorKind, str] = {
    ProviderErrorKind.CALL_LIMIT_REACHED: "Call limit reached",
    ProviderErrorKind.API_KEY_EXPIRED: "API key expired",
    ProviderErrorKind.INCORRECT_API_KEY: "Incorrect API key",
    ProviderErrorKind.IP_LOCATION_FAILED: "IP location failed",
    ProviderErrorKind.NO_NEAREST_STATION: "No nearest station",
    ProviderErrorKind.FEATURE_NOT_AVAILABLE: "Feature not available",
    ProviderErrorKind.TOO_MANY_REQUESTS: "Too many requests",
    ProviderErrorKind.UNKNOWN_STATUS: "Unknown status",
}


class ProviderStatusError(AirVisualError):
    """The provider answered, but with a non-success status."""

    def __init__(self, kind: ProviderErrorKind, status: str | None = None):
        self.kind = kind
        self.status = status
        message = PROVIDER_ERROR_MESSAGES[kind]
        if kind is ProviderErrorKind.UNKNOWN_STATUS and status:
            message = f"{message}: {status}"
        super().__init__(message)


class TransportError(AirVisualError):
    """Network failure or an HTTP error without a usable provider status."""


class ConversionError(AirVisualError):
    """A unit conversion could not be performed."""


class UnsupportedPollutant(ConversionError):
    pass


class InvalidMeasurement(ConversionError):
    pass
