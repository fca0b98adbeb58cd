from providers.base import Provider, SectionProvider, NotesProvider  # noqa: F401
from providers.schema import SchemaProvider  # noqa: F401
from providers.registry import ProviderRegistry, default_registry  # noqa: F401
