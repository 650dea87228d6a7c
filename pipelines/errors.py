"""Typed errors raised by the gold price provider."""

from __future__ import annotations

from enum import Enum


class ErrorCategory(str, Enum):
    """Coarse classification of an upstream price failure."""

    CONFIG_ERROR = "CONFIG_ERROR"
    RATE_LIMITED = "RATE_LIMITED"
    FORBIDDEN = "FORBIDDEN"
    UNAUTHORIZED = "UNAUTHORIZED"
    SERVER_ERROR = "SERVER_ERROR"
    API_ERROR = "API_ERROR"
    NULL_RESPONSE = "NULL_RESPONSE"
    JSON_PARSE_ERROR = "JSON_PARSE_ERROR"
    INVALID_RESPONSE = "INVALID_RESPONSE"
    UNEXPECTED_ERROR = "UNEXPECTED_ERROR"


SERVICE_UNAVAILABLE = 503
BAD_GATEWAY = 502


def category_for_status(status: int) -> ErrorCategory:
    """Map a provider HTTP status to an error category."""

    if status == 429:
        return ErrorCategory.RATE_LIMITED
    if status == 403:
        return ErrorCategory.FORBIDDEN
    if status == 401:
        return ErrorCategory.UNAUTHORIZED
    if status >= 500:
        return ErrorCategory.SERVER_ERROR
    return ErrorCategory.API_ERROR


class GoldPriceError(Exception):
    """Base class for gold price provider errors."""


class GoldPriceParseError(GoldPriceError):
    """The provider body could not be decoded into a JSON object."""

    def __init__(self, message: str, request_id: str, raw_response: str | None = None):
        super().__init__(message)
        self.request_id = request_id
        self.raw_response = raw_response


class GoldApiUnavailableError(GoldPriceError):
    """The gold price provider could not produce a usable price.

    Carries the request correlation id, the provider-reported (or synthesized)
    HTTP status and an :class:`ErrorCategory`.
    """

    def __init__(
        self,
        message: str,
        http_status: int,
        error_type: ErrorCategory,
        request_id: str,
    ):
        super().__init__(message)
        self.message = message
        self.http_status = http_status
        self.error_type = ErrorCategory(error_type)
        self.request_id = request_id

    @property
    def is_rate_limited(self) -> bool:
        return self.http_status == 429 or self.error_type is ErrorCategory.RATE_LIMITED

    @property
    def recommended_status(self) -> int:
        """HTTP status a caller-facing layer should answer with."""

        if self.is_rate_limited:
            return SERVICE_UNAVAILABLE
        return BAD_GATEWAY

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(error_type={self.error_type.value!r}, "
            f"http_status={self.http_status}, request_id={self.request_id!r})"
        )


__all__ = [
    "BAD_GATEWAY",
    "ErrorCategory",
    "GoldApiUnavailableError",
    "GoldPriceError",
    "GoldPriceParseError",
    "SERVICE_UNAVAILABLE",
    "category_for_status",
]
