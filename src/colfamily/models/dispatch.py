from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, model_validator

from colfamily.models.column import ColumnDeclaration
from colfamily.models.enums import FinderKind, FinderSource, Operator


class DispatchEntry(BaseModel):
    """A synthesized finder: its name, execution kind and the columns it binds."""

    method_name: str
    kind: FinderKind
    target_columns: tuple[ColumnDeclaration, ...] = Field(min_length=1)
    source: FinderSource

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    @model_validator(mode="after")
    def _validate_index_arity(self) -> "DispatchEntry":
        if self.source is FinderSource.SECONDARY_INDEX and len(self.target_columns) != 1:
            raise ValueError("secondary index finders bind exactly one column")
        return self

    @property
    def column_names(self) -> tuple[str, ...]:
        return tuple(column.name for column in self.target_columns)

    @property
    def arity(self) -> int:
        return len(self.target_columns)


class BooleanScopeEntry(BaseModel):
    column_name: str
    positive_method: str
    negative_method: str

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    def value_for(self, method_name: str) -> bool:
        if method_name == self.positive_method:
            return True
        if method_name == self.negative_method:
            return False
        raise KeyError(method_name)


class Predicate(BaseModel):
    """Equality restriction on one column against an already coerced value."""

    column: str
    operator: Operator = Operator.EQ
    value: Any

    model_config = ConfigDict(frozen=True, extra="forbid")

    def matches(self, row: Mapping[str, Any]) -> bool:
        return row.get(self.column) == self.value


__all__ = ["BooleanScopeEntry", "DispatchEntry", "Predicate"]
