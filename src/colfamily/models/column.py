from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationInfo, field_validator, model_validator

from colfamily.models.base import ensure_identifier
from colfamily.models.enums import ColumnRole, StorageType

AUTO_GENERATED_TYPES = frozenset({StorageType.UUID, StorageType.TIMEUUID})


class ColumnDeclaration(BaseModel):
    name: str
    storage_type: StorageType
    role: ColumnRole
    auto_generate: bool = False

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    @field_validator("name", mode="before")
    @classmethod
    def _validate_name(cls, value: Any, info: ValidationInfo) -> str:
        return ensure_identifier(value, info.field_name or "name")

    @model_validator(mode="after")
    def _validate_auto_generate(self) -> "ColumnDeclaration":
        if self.auto_generate:
            if not self.is_key:
                raise ValueError("auto_generate is only supported on key columns")
            if self.storage_type not in AUTO_GENERATED_TYPES:
                raise ValueError("auto_generate requires a uuid or timeuuid column")
        return self

    @property
    def is_key(self) -> bool:
        return self.role in (ColumnRole.PARTITION_KEY, ColumnRole.CLUSTERING_KEY)

    @property
    def is_partition_key(self) -> bool:
        return self.role is ColumnRole.PARTITION_KEY

    @property
    def is_indexed(self) -> bool:
        return self.role is ColumnRole.INDEXED_DATA

    @property
    def is_boolean(self) -> bool:
        return self.storage_type is StorageType.BOOLEAN


__all__ = ["AUTO_GENERATED_TYPES", "ColumnDeclaration"]
