"""
Annotation pipeline.

Runs the ordered providers for one model against one connection borrowed from
the engine for the whole run. A failing provider is logged and skipped; the
pipeline itself only raises when RAISE_ON_ERROR is set or no connection can
be checked out.
"""
import logging
from typing import Optional

from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, OperationalError, StatementError

from config import settings
from core.errors import ConnectionNotEstablishedError, ErrorReporter, SchemaLensError
from core.inflector import Inflector
from core.note_codes import unique
from core.session import ReflectionSession
from core.view_metadata import ViewCache
from models.annotation import NotesResult, PipelineResult, ProviderResult, SchemaResult, SectionResult
from models.descriptor import ModelDescriptor
from providers.base import Provider
from providers.registry import ProviderRegistry, default_registry

logger = logging.getLogger(__name__)


class AnnotationPipeline:
    def __init__(
        self,
        providers: Optional[list[Provider]] = None,
        registry: Optional[ProviderRegistry] = None,
        view_cache: Optional[ViewCache] = None,
        inflector: Optional[Inflector] = None,
    ):
        if providers is None:
            providers = (registry or default_registry()).build()
        self.providers = providers
        self.view_cache = view_cache if view_cache is not None else ViewCache()
        self.inflector = inflector

    def process(self, model: ModelDescriptor, engine: Engine) -> PipelineResult:
        result = PipelineResult()
        try:
            connection = engine.connect()
        except OperationalError as e:
            raise ConnectionNotEstablishedError(f"Could not connect for {model.name}: {e.orig}") from e

        with connection:
            session = ReflectionSession(connection, model, view_cache=self.view_cache, inflector=self.inflector)
            for provider in self.providers:
                self._run(provider, model, session, result)

        result.notes = unique(result.notes)
        return result

    def _run(self, provider: Provider, model: ModelDescriptor, session: ReflectionSession,
             result: PipelineResult) -> None:
        name = getattr(provider, "name", type(provider).__name__)
        context = {"model": model.name, "provider": name}
        try:
            if not provider.applicable(model, session):
                return
            output = provider.process(model, session)
        except (DBAPIError, StatementError) as e:
            logger.warning("Provider %s hit a database error for %s: %s", name, model.name, e)
            self._failed(e, context)
            session.recover()
            return
        except ConnectionNotEstablishedError as e:
            logger.warning("Provider %s has no connection for %s: %s", name, model.name, e)
            self._failed(e, context)
            return
        except (AttributeError, NameError) as e:
            logger.warning("Provider %s failed for %s (%s): %s", name, model.name, type(e).__name__, e)
            self._failed(e, context)
            return
        except SchemaLensError as e:
            logger.warning("Provider %s failed for %s: %s", name, model.name, e)
            self._failed(e, context)
            return
        except Exception as e:
            logger.error("Unexpected error in provider %s for %s: %s", name, model.name, e)
            self._failed(e, context)
            return
        self._route(output, name, model, result)

    @staticmethod
    def _failed(error: Exception, context: dict) -> None:
        ErrorReporter.report(error, context)
        if settings.RAISE_ON_ERROR:
            raise error

    @staticmethod
    def _route(output: Optional[ProviderResult], name: str, model: ModelDescriptor, result: PipelineResult) -> None:
        if output is None:
            return
        if isinstance(output, SchemaResult):
            if result.schema_text is not None:
                logger.warning("Provider %s overrides the schema already produced for %s", name, model.name)
            result.schema_text = output.text
        elif isinstance(output, SectionResult):
            if output.content:
                result.sections.append(output)
        elif isinstance(output, NotesResult):
            result.notes.extend(output.notes)
        else:
            logger.warning("Provider %s returned unsupported result %r", name, type(output).__name__)
