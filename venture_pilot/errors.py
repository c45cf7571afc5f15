"""Error taxonomy shared by the pipeline and the HTTP surface."""

from __future__ import annotations

from typing import Dict


class StageError(Exception):
    """Base class for failures that map onto an HTTP-style error envelope."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_body(self) -> Dict[str, str]:
        return {"error": self.message}


class BadRequest(StageError):
    """Missing or malformed input, detected before any upstream call."""

    status_code = 400


class NotFound(StageError):
    """The requested stage token is not routed."""

    status_code = 404

    def __init__(self, message: str = "Not found") -> None:
        super().__init__(message)


class UpstreamError(StageError):
    """The model provider failed or answered with a non-success status.

    ``body`` keeps the provider's raw response text for diagnosis.
    """

    status_code = 500

    def __init__(self, message: str, body: str | None = None) -> None:
        super().__init__(message)
        self.body = body


class MalformedModelOutput(StageError):
    """Model text did not match the expected shape.

    Raised and caught inside the normalizer only; callers always receive a
    degraded value instead.
    """

    status_code = 500
