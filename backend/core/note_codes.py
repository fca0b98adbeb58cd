"""Compact advisory note codes, rendered as "subject:CODE"."""
from typing import Optional

# Column constraints
NOT_NULL = "NOT_NULL"
DEFAULT = "DEFAULT"
LIMIT = "LIMIT"

# Indexes
INDEX = "INDEX"
POLY_INDEX = "POLY_INDEX"
COMP_INDEX = "COMP_INDEX"
REDUND_IDX = "REDUND_IDX"

# Types
USE_DECIMAL = "USE_DECIMAL"
USE_INTEGER = "USE_INTEGER"

# Associations
INVERSE_OF = "INVERSE_OF"
N_PLUS_ONE = "N_PLUS_ONE"
COUNTER_CACHE = "COUNTER_CACHE"
FK_CONSTRAINT = "FK_CONSTRAINT"

# Best practices
NO_TIMESTAMPS = "NO_TIMESTAMPS"
PARTIAL_TS = "PARTIAL_TS"
STORAGE = "STORAGE"

# Single-table inheritance
STI_NOT_NULL = "STI_NOT_NULL"

# Views
VIEW_READONLY = "VIEW_READONLY"
ADD_READONLY = "ADD_READONLY"
MATVIEW_STALE = "MATVIEW_STALE"
ADD_REFRESH = "ADD_REFRESH"
NESTED_VIEW = "NESTED_VIEW"
VIEW_PROTECT = "VIEW_PROTECT"

# Extensions
MISSING_TABLE = "MISSING_TABLE"


def note(subject: Optional[str], code: str) -> str:
    """Build a compact note; model-level notes carry no subject."""
    return f"{subject}:{code}" if subject else code


def unique(notes: list[str]) -> list[str]:
    """Drop repeated notes, keeping first-occurrence order."""
    seen: set[str] = set()
    result = []
    for n in notes:
        if n and n not in seen:
            seen.add(n)
            result.append(n)
    return result
