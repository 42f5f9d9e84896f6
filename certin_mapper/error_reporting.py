"""Error categorization and user-facing error messages.

Failures are sorted into a small taxonomy (network, parsing, validation,
api, unknown) so callers can decide whether to retry and so the
presentation layer can show a short title/message/action triple.
"""

import json
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

import requests

from .exceptions import APIError, NetworkError, ParsingError, ValidationError
from .logging_config import logger


class ErrorCategory(str, Enum):
    NETWORK = "network"
    PARSING = "parsing"
    VALIDATION = "validation"
    API = "api"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ErrorMessage:
    """A short, user-facing description of a failure."""

    title: str
    message: str
    action: str


def get_status_code(error: BaseException) -> Optional[int]:
    """Return the HTTP status carried by an error, if any."""
    if isinstance(error, APIError):
        return error.status_code
    if isinstance(error, requests.HTTPError) and error.response is not None:
        return error.response.status_code
    status = getattr(error, "status_code", None) or getattr(error, "status", None)
    return status if isinstance(status, int) else None


def categorize_error(error: BaseException) -> ErrorCategory:
    """
    Sort an exception into the error taxonomy.

    Args:
        error: Any exception raised by a source, parser or the core

    Returns:
        The matching ErrorCategory
    """
    if isinstance(error, NetworkError):
        return ErrorCategory.NETWORK
    # HTTPError is a RequestException too, so status-bearing errors go first
    if isinstance(error, (APIError, requests.HTTPError)) or get_status_code(error) is not None:
        return ErrorCategory.API
    if isinstance(error, (requests.ConnectionError, requests.Timeout)):
        return ErrorCategory.NETWORK
    if isinstance(error, (ParsingError, json.JSONDecodeError)):
        return ErrorCategory.PARSING
    if isinstance(error, ValidationError) or "validation" in str(error).lower():
        return ErrorCategory.VALIDATION
    if isinstance(error, requests.RequestException):
        return ErrorCategory.NETWORK
    return ErrorCategory.UNKNOWN


def is_transient(error: BaseException) -> bool:
    """Check whether retrying the failed operation could succeed."""
    category = categorize_error(error)
    if category == ErrorCategory.NETWORK:
        return True
    if category == ErrorCategory.API:
        status = get_status_code(error)
        return status == 429 or (status is not None and status >= 500)
    return False


def get_user_friendly_message(error: BaseException, context: str = "") -> ErrorMessage:
    """
    Build a title/message/action triple for an error.

    Args:
        error: The exception to describe
        context: Optional text used for unclassified errors

    Returns:
        ErrorMessage suitable for display
    """
    category = categorize_error(error)

    if category == ErrorCategory.NETWORK:
        return ErrorMessage(
            title="Network Error",
            message="Unable to connect to the server. Please check your internet connection and try again.",
            action="Retry",
        )

    if category == ErrorCategory.PARSING:
        return ErrorMessage(
            title="Invalid File Format",
            message="The file is not a valid JSON or CycloneDX SBOM. Please check the file and try again.",
            action="Upload Different File",
        )

    if category == ErrorCategory.VALIDATION:
        return ErrorMessage(
            title="Validation Error",
            message=str(error) or "The provided data is invalid. Please check your input and try again.",
            action="Fix Input",
        )

    if category == ErrorCategory.API:
        status = get_status_code(error)
        if status == 404:
            return ErrorMessage(
                title="Not Found",
                message="The requested resource was not found. This might be a temporary issue.",
                action="Retry",
            )
        if status == 429:
            return ErrorMessage(
                title="Rate Limited",
                message="Too many requests. Please wait a moment and try again.",
                action="Wait and Retry",
            )
        if status is not None and status >= 500:
            return ErrorMessage(
                title="Server Error",
                message="The server encountered an error. Please try again later.",
                action="Retry Later",
            )
        return ErrorMessage(
            title="API Error",
            message=f"Request failed with status {status}. Please try again.",
            action="Retry",
        )

    return ErrorMessage(
        title="Unexpected Error",
        message=context
        or "An unexpected error occurred. Please try again or contact support if the problem persists.",
        action="Retry",
    )


def handle_sbom_error(error: BaseException, file_name: str = "") -> ErrorMessage:
    """Describe a failure to load an SBOM document."""
    text = str(error)
    if "components" in text:
        return ErrorMessage(
            title="Invalid SBOM Structure",
            message=f"The file \"{file_name}\" is not a valid CycloneDX SBOM. It must contain a 'components' array.",
            action="Check File Format",
        )
    if "JSON" in text or isinstance(error, json.JSONDecodeError):
        return ErrorMessage(
            title="Invalid JSON",
            message=f"The file \"{file_name}\" is not valid JSON. Please ensure it's a properly formatted JSON file.",
            action="Validate JSON",
        )
    return get_user_friendly_message(error, f"Error processing SBOM file: {file_name}")


def log_error(error: BaseException, context: str = "", additional_info: Optional[Dict[str, Any]] = None) -> None:
    """Log an error together with its category and caller context."""
    category = categorize_error(error)
    details = f" {additional_info}" if additional_info else ""
    logger.error(f"{context}: [{category.value}] {type(error).__name__}: {error}{details}")
