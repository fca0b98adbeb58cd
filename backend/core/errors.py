"""
Error taxonomy and the shared error reporter.

Configuration errors are fatal for the invoking command; database, annotation
and extension errors are recoverable per model or per file.
"""
import logging
import traceback
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from config import settings

logger = logging.getLogger(__name__)


class SchemaLensError(Exception):
    """Base class for all schema-lens errors."""


class ConfigurationError(SchemaLensError):
    pass


# ── Model discovery ───────────────────────────────────────────────────────────

class ModelDetectionError(SchemaLensError):
    pass


class ModelNotFoundError(ModelDetectionError):
    pass


# ── Database ──────────────────────────────────────────────────────────────────

class DatabaseError(SchemaLensError):
    pass


class ConnectionNotEstablishedError(DatabaseError):
    pass


class SchemaError(DatabaseError):
    pass


class TableNotFoundError(DatabaseError):
    pass


class UnsupportedAdapterError(DatabaseError):
    pass


# ── Annotation ────────────────────────────────────────────────────────────────

class AnnotationError(SchemaLensError):
    pass


class SourceFileNotFoundError(AnnotationError):
    pass


class ParseError(AnnotationError):
    pass


class InsertionError(AnnotationError):
    pass


# ── Extensions / analysis ─────────────────────────────────────────────────────

class ExtensionError(SchemaLensError):
    pass


class ExtensionLoadError(ExtensionError):
    pass


class ExtensionConfigError(ExtensionError):
    pass


class AnalysisError(SchemaLensError):
    pass


class AnalyzerError(AnalysisError):
    pass


class ErrorReporter:
    """Forwards swallowed errors to the log; re-raises when RAISE_ON_ERROR is set."""

    TRACE_FRAMES = 5

    @classmethod
    def report(cls, error: BaseException, context: Optional[dict[str, Any]] = None) -> None:
        message = cls.build_message(error, context or {})
        if settings.VERBOSE or settings.DEBUG:
            logger.error(message)
        else:
            logger.debug(message)

    @classmethod
    @contextmanager
    def handle(cls, **context: Any) -> Iterator[None]:
        try:
            yield
        except Exception as e:
            cls.report(e, context)
            if settings.RAISE_ON_ERROR:
                raise

    @classmethod
    def build_message(cls, error: BaseException, context: dict[str, Any]) -> str:
        parts = ["[schema-lens error]"]
        if context:
            parts.append(f"Context: {context!r}")
        parts.append(f"{type(error).__name__}: {error}")
        if settings.DEBUG and error.__traceback__ is not None:
            frames = traceback.format_tb(error.__traceback__)[-cls.TRACE_FRAMES:]
            parts.append("".join(frames).rstrip())
        return "\n".join(parts)
