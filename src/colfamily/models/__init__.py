from colfamily.models.base import RecordModel
from colfamily.models.column import ColumnDeclaration
from colfamily.models.dispatch import BooleanScopeEntry, DispatchEntry, Predicate
from colfamily.models.enums import ColumnRole, FinderKind, FinderSource, Operator, StorageType

__all__ = [
    "RecordModel",
    "ColumnDeclaration",
    "DispatchEntry",
    "BooleanScopeEntry",
    "Predicate",
    "ColumnRole",
    "FinderKind",
    "FinderSource",
    "Operator",
    "StorageType",
]
