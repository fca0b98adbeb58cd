"""Primary schema dump provider."""
import logging
from typing import Optional

from core.errors import TableNotFoundError
from core.session import ReflectionSession
from models.annotation import SchemaResult
from models.descriptor import ModelDescriptor
from providers.base import Provider

logger = logging.getLogger(__name__)


class SchemaProvider(Provider):
    type = "schema"
    name = "schema"

    def applicable(self, model: ModelDescriptor, session: ReflectionSession) -> bool:
        return model.abstract or bool(model.table_name)

    def process(self, model: ModelDescriptor, session: ReflectionSession) -> Optional[SchemaResult]:
        if not model.abstract and not session.has_table:
            raise TableNotFoundError(f"Table {model.table_name!r} for {model.name} has no reflectable columns")
        text = session.dialect.generate_annotation(model, view=None if model.abstract else session.view)
        logger.debug("Rendered schema for %s (%d lines)", model.name, text.count("\n") + 1)
        return SchemaResult(text=text)
