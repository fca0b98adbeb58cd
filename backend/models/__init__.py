from models.table import (  # noqa: F401
    TableMetadata, ColumnMetadata, IndexMetadata, ForeignKeyMetadata,
    CheckConstraint, GeneratedColumn, TriggerMetadata,
)
from models.view import ViewDescriptor, NOT_A_VIEW  # noqa: F401
from models.descriptor import (  # noqa: F401
    ModelDescriptor, AssociationDescriptor, EnumDefinition, InheritanceInfo, DelegatedTypeInfo,
)
from models.annotation import (  # noqa: F401
    SchemaResult, SectionResult, NotesResult, ProviderResult, PipelineResult,
    AnnotationBlock, BatchReport, BatchResponse, FailedModel,
)
