"""Relay errors and the user-facing messages for upstream failures."""

from fastapi import status

MISSING_API_KEY = "API key is not configured. Enter a valid API key in the settings."
MISSING_BASE_URL = "API base URL is not configured. Enter the API address in the settings."
EXAMPLE_BASE_URL = "https://aihubmix.com/v1/chat/completions"

UPSTREAM_STATUS_MESSAGES: dict[int, str] = {
    401: "Invalid API key (401). Check that the API key is correct.",
    403: "Access denied (403). Check the API key permissions or account balance.",
    405: (
        "Method not allowed (405). Check that the API base URL "
        "ends with /v1/chat/completions."
    ),
    413: (
        "Request too large (413). Shorten the conversation "
        "or remove some knowledge-base files."
    ),
    429: "Too many requests (429). Please try again later.",
    500: "Upstream server error (500). The AI service is temporarily unavailable.",
}


class RelayError(Exception):
    """Raised when a chat request cannot be relayed.

    Attributes:
        message: User-facing description.
        status_code: HTTP status to answer with.
    """

    def __init__(self, message: str, status_code: int = status.HTTP_400_BAD_REQUEST) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class RelayStreamError(Exception):
    """Raised when the upstream stream breaks after streaming has started."""

    pass


def invalid_base_url_message(base_url: str) -> str:
    return (
        f"Invalid API base URL format: {base_url}. "
        f"Use a full http(s) URL, for example: {EXAMPLE_BASE_URL}"
    )


def describe_upstream_status(status_code: int, base_url: str, body: str) -> str:
    """Map an upstream HTTP error status to a readable message.

    Args:
        status_code: Status returned by the upstream API.
        base_url: The configured upstream URL, echoed back for 404s.
        body: Upstream response body, used for unrecognized statuses.

    Returns:
        A message suitable for a toast in the UI.
    """
    if status_code == 404:
        return (
            f"API endpoint not found (404). Check the API base URL:\n"
            f"Current URL: {base_url}\n"
            f"Suggested: {EXAMPLE_BASE_URL}"
        )
    if status_code in UPSTREAM_STATUS_MESSAGES:
        return UPSTREAM_STATUS_MESSAGES[status_code]
    return f"AI API error ({status_code}): {body}"
