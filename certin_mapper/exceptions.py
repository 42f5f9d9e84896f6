"""Custom exceptions for certin-mapper."""

from typing import Optional


class CertInError(Exception):
    """Base exception for all certin-mapper operations."""


class ConfigurationError(CertInError):
    """Raised when configuration validation fails."""


class NetworkError(CertInError):
    """Raised when an external source cannot be reached."""


class ParsingError(CertInError):
    """Raised when a response or document cannot be parsed."""


class ValidationError(CertInError):
    """Raised when input is well-formed but semantically invalid."""


class APIError(CertInError):
    """Raised when an external source answers with a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_not_found(self) -> bool:
        return self.status_code == 404

    @property
    def is_rate_limited(self) -> bool:
        return self.status_code == 429

    @property
    def is_server_error(self) -> bool:
        return self.status_code is not None and self.status_code >= 500


class FileProcessingError(CertInError):
    """Raised when reading or writing an SBOM file fails."""
