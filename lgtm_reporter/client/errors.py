"""Errors raised by the LGTM API client."""

import json
from typing import Any

import aiohttp

MAX_RESPONSE_BODY_LENGTH = 1024


def truncate_body(body: Any) -> Any:
    """Bound the size of a response body kept on an error.

    Strings and JSON-serializable containers longer than
    ``MAX_RESPONSE_BODY_LENGTH`` characters are cut and suffixed with
    ``... [truncated]``; the container is returned as its serialized form in
    that case. Anything shorter is returned unchanged.
    """
    if body is None:
        return None
    if isinstance(body, str):
        if len(body) > MAX_RESPONSE_BODY_LENGTH:
            return body[:MAX_RESPONSE_BODY_LENGTH] + "... [truncated]"
        return body
    if isinstance(body, dict | list):
        serialized = json.dumps(body)
        if len(serialized) > MAX_RESPONSE_BODY_LENGTH:
            return serialized[:MAX_RESPONSE_BODY_LENGTH] + "... [truncated]"
    return body


class LgtmApiError(RuntimeError):
    """Raised when the LGTM API answers with a non-success status."""

    def __init__(
        self, message: str, status_code: int, response_body: Any = None
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response_body = truncate_body(response_body)

    @classmethod
    async def from_response(cls, response: aiohttp.ClientResponse) -> "LgtmApiError":
        """Build an error from a failed response, preferring its ``error`` field."""
        body: Any
        try:
            body = await response.json()
        except (aiohttp.ContentTypeError, ValueError):
            body = await response.text()

        if isinstance(body, dict) and "error" in body:
            message = str(body["error"])
        else:
            message = f"API request failed with status {response.status}"

        return cls(message, response.status, body)
