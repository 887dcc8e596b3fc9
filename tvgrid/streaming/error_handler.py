"""
Central error classification for stream engines.

Every failure reported by a player or probe session is reduced to one of
three kinds, which decide what the failover controller does next:

- network: the source is unreachable; fail over to the next source
- media: the source is reachable but its content could not be decoded;
  attempt in-place recovery on the same source
- fatal: nothing automatic will help; stop and wait for the user
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class EngineErrorKind(str, Enum):
    """Classification of engine errors."""

    NETWORK = "network"
    MEDIA = "media"
    FATAL = "fatal"


class EngineError(Exception):
    """A classified engine failure."""

    def __init__(
        self,
        kind: EngineErrorKind,
        message: str,
        url: str | None = None,
        original_exception: Exception | None = None,
    ):
        super().__init__(message)
        self.kind = EngineErrorKind(kind)
        self.message = message
        self.url = url
        self.original_exception = original_exception
        self.timestamp = datetime.utcnow()

    def __repr__(self) -> str:
        return f"EngineError(kind={self.kind.value!r}, message={self.message!r}, url={self.url!r})"


class PlaylistLoadError(Exception):
    """Raised when a playlist cannot be fetched."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"Failed to load playlist {url}: {reason}")
        self.url = url
        self.reason = reason


class ErrorClassifier:
    """Classifies exceptions into engine error kinds."""

    MEDIA_TERMS = (
        "codec",
        "decoder",
        "decode",
        "demux",
        "corrupt",
        "segment",
        "buffer stall",
        "no playable",
        "manifest",
    )
    FATAL_TERMS = (
        "unsupported protocol",
        "invalid url",
        "unsupported codec",
        "not supported",
    )

    @staticmethod
    def classify(error: Exception, context: dict[str, Any] | None = None) -> EngineError:
        """
        Classify an exception into an EngineError.

        Args:
            error: The exception to classify.
            context: Additional context (url, http_status_code).

        Returns:
            EngineError with the classified kind.
        """
        if context is None:
            context = {}
        url = context.get("url")

        if isinstance(error, EngineError):
            return error

        kind = EngineErrorKind.NETWORK
        error_str = str(error).lower()

        # Malformed or unusable URLs can never play
        if isinstance(error, (httpx.UnsupportedProtocol, httpx.InvalidURL)):
            kind = EngineErrorKind.FATAL

        # Connection failures, timeouts, DNS
        elif isinstance(error, (httpx.TransportError, TimeoutError)):
            kind = EngineErrorKind.NETWORK

        elif isinstance(error, httpx.HTTPStatusError):
            kind = EngineErrorKind.NETWORK

        elif any(term in error_str for term in ErrorClassifier.FATAL_TERMS):
            kind = EngineErrorKind.FATAL

        elif any(term in error_str for term in ErrorClassifier.MEDIA_TERMS):
            kind = EngineErrorKind.MEDIA

        # An HTTP status always means the source itself is unreachable
        if context.get("http_status_code"):
            kind = EngineErrorKind.NETWORK

        return EngineError(kind, str(error) or type(error).__name__, url=url, original_exception=error)


class ErrorHandler:
    """Classifies errors and keeps a short history for diagnostics."""

    def __init__(self, history_size: int = 100):
        self.history_size = history_size
        self.classifier = ErrorClassifier()
        self.error_history: list[EngineError] = []

    def handle_error(
        self,
        error: Exception,
        context: dict[str, Any] | None = None,
    ) -> EngineError:
        """
        Classify an error and record it.

        Args:
            error: The exception to handle.
            context: Additional context about the error.

        Returns:
            The classified EngineError.
        """
        engine_error = self.classifier.classify(error, context)

        self.error_history.append(engine_error)
        if len(self.error_history) > self.history_size:
            self.error_history = self.error_history[-self.history_size:]

        logger.debug(
            f"Error classified: {engine_error.kind.value} "
            f"({engine_error.message}, url: {engine_error.url})"
        )

        return engine_error

    def get_recent_errors(
        self,
        kind: EngineErrorKind | None = None,
        limit: int = 10,
    ) -> list[EngineError]:
        """Get recent errors, optionally filtered by kind."""
        errors = self.error_history[-limit:]
        if kind:
            errors = [e for e in errors if e.kind == kind]
        return errors
