from enum import StrEnum


class StorageType(StrEnum):
    TEXT = "text"
    ASCII = "ascii"
    VARCHAR = "varchar"
    UUID = "uuid"
    TIMEUUID = "timeuuid"
    BOOLEAN = "boolean"
    INT = "int"
    BIGINT = "bigint"
    VARINT = "varint"
    FLOAT = "float"
    DOUBLE = "double"
    DECIMAL = "decimal"
    TIMESTAMP = "timestamp"
    BLOB = "blob"


class ColumnRole(StrEnum):
    PARTITION_KEY = "partition_key"
    CLUSTERING_KEY = "clustering_key"
    DATA = "data"
    INDEXED_DATA = "indexed_data"


class FinderKind(StrEnum):
    FIND_ONE = "find_one"
    FIND_ALL_EAGER = "find_all_eager"
    SCOPE_LAZY = "scope_lazy"


class FinderSource(StrEnum):
    KEY_PREFIX = "key_prefix"
    KEY_FULL = "key_full"
    SECONDARY_INDEX = "secondary_index"


class Operator(StrEnum):
    EQ = "="
