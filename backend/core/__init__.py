from core.errors import SchemaLensError, ErrorReporter  # noqa: F401
from core.codec import AnnotationCodec, assemble, parse_sections, remove_any  # noqa: F401
from core.file_patcher import insert_at_class_definition, insert_at_line, remove_from_file  # noqa: F401
from core.db_connector import create_engine_from_url, resolve_dialect  # noqa: F401
