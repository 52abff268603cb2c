import pytest
from pydantic import ValidationError

from colfamily.models.column import ColumnDeclaration
from colfamily.models.dispatch import BooleanScopeEntry, DispatchEntry, Predicate
from colfamily.models.enums import ColumnRole, FinderKind, FinderSource, Operator, StorageType


def _column(name: str, role: ColumnRole = ColumnRole.INDEXED_DATA) -> ColumnDeclaration:
    return ColumnDeclaration(name=name, storage_type=StorageType.TEXT, role=role)


def test_dispatch_entry_exposes_columns() -> None:
    entry = DispatchEntry(
        method_name="find_by_blog_subdomain_and_id",
        kind=FinderKind.FIND_ONE,
        target_columns=(_column("blog_subdomain", ColumnRole.PARTITION_KEY), _column("id", ColumnRole.CLUSTERING_KEY)),
        source=FinderSource.KEY_FULL,
    )

    assert entry.column_names == ("blog_subdomain", "id")
    assert entry.arity == 2


def test_dispatch_entry_requires_columns() -> None:
    with pytest.raises(ValidationError):
        DispatchEntry(method_name="find_by_", kind=FinderKind.FIND_ONE, target_columns=(), source=FinderSource.KEY_FULL)


def test_index_entry_binds_one_column() -> None:
    with pytest.raises(ValidationError):
        DispatchEntry(
            method_name="find_by_a_and_b",
            kind=FinderKind.FIND_ONE,
            target_columns=(_column("a"), _column("b")),
            source=FinderSource.SECONDARY_INDEX,
        )


def test_boolean_scope_entry_values() -> None:
    entry = BooleanScopeEntry(column_name="read", positive_method="where_read", negative_method="where_not_read")

    assert entry.value_for("where_read") is True
    assert entry.value_for("where_not_read") is False
    with pytest.raises(KeyError):
        entry.value_for("where_approved")


def test_predicate_matches_rows() -> None:
    predicate = Predicate(column="approved", value=True)

    assert predicate.operator is Operator.EQ
    assert predicate.matches({"approved": True})
    assert not predicate.matches({"approved": False})
    assert not predicate.matches({})
