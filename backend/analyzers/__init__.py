from analyzers.base import Analyzer  # noqa: F401
from analyzers.column import ColumnAnalyzer  # noqa: F401
from analyzers.index import IndexAnalyzer  # noqa: F401
from analyzers.foreign_key import ForeignKeyAnalyzer  # noqa: F401
from analyzers.association import AssociationAnalyzer  # noqa: F401
from analyzers.performance import PerformanceAnalyzer  # noqa: F401
from analyzers.best_practices import BestPracticesAnalyzer  # noqa: F401
from analyzers.view_notes import ViewNotesAnalyzer  # noqa: F401
