"""
Foreign-key aggregation and the per-table relationship views.

Catalogs report composite foreign keys one column per row. The aggregator
groups those rows by constraint name, keeping the catalog's ordinal order so
``foreign_columns[i]`` always lines up with ``key_columns[i]``.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set, Tuple

from .models import RelationshipInfo, TableInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ForeignKeyRow:
    """One column pair of a foreign key constraint, as read from a catalog."""

    constraint_name: str
    from_schema: str
    from_table: str
    from_column: str
    to_schema: str
    to_table: str
    to_column: str


def aggregate_foreign_keys(rows: Iterable[ForeignKeyRow]) -> List[RelationshipInfo]:
    """
    Group flat FK rows into one RelationshipInfo per constraint.

    Rows must arrive ordered by constraint and then by column ordinal. Order
    of first appearance is kept for constraints, and input order for columns.
    Constraint names are only unique per table on some engines, so rows are
    grouped by (schema, table, constraint). Self-references are regular
    relationships.
    """
    grouped: Dict[Tuple[str, str, str], RelationshipInfo] = {}
    for row in rows:
        group = ((row.from_schema or "").lower(), row.from_table.lower(), row.constraint_name)
        rel = grouped.get(group)
        if rel is None:
            rel = RelationshipInfo(
                name=row.constraint_name,
                schema_from=row.from_schema,
                table_from=row.from_table,
                foreign_columns=[],
                schema_to=row.to_schema,
                table_to=row.to_table,
                key_columns=[],
            )
            grouped[group] = rel
        rel.foreign_columns.append(row.from_column)
        rel.key_columns.append(row.to_column)
    return list(grouped.values())


def _matches(table: TableInfo, schema: str, name: str) -> bool:
    if (table.name or "").lower() != (name or "").lower():
        return False
    if not schema:
        return True
    return (table.schema or "").lower() == schema.lower()


def populate_table_relationships(
    tables: List[TableInfo], relationships: List[RelationshipInfo]
) -> None:
    """
    Fill each table's outgoing and incoming relationship lists from the flat list.

    Matching is case-insensitive on (schema, table). A relationship without a
    schema matches on the table name alone.
    """
    for table in tables:
        table.outgoing_relationships = [
            r for r in relationships if _matches(table, r.schema_from, r.table_from)
        ]
        table.incoming_relationships = [
            r for r in relationships if _matches(table, r.schema_to, r.table_to)
        ]


def _resolve_referenced_table(
    candidate: str, by_name: Dict[str, TableInfo]
) -> Optional[TableInfo]:
    """Look up ``candidate`` as-is, pluralized with "s", then singularized."""
    lower = candidate.lower()
    if lower in by_name:
        return by_name[lower]
    if lower + "s" in by_name:
        return by_name[lower + "s"]
    if lower.endswith("s") and lower[:-1] in by_name:
        return by_name[lower[:-1]]
    return None


def _referenced_name(column: str) -> Optional[str]:
    lower = column.lower()
    if lower.endswith("_id"):
        return column[:-3]
    if lower.endswith("id") and len(lower) > 2:
        return column[:-2]
    if lower.endswith("_fk"):
        return column[:-3]
    if lower.startswith("fk_"):
        return column[3:]
    return None


def infer_relationships_from_names(
    tables: List[TableInfo], existing: Iterable[RelationshipInfo] = ()
) -> List[RelationshipInfo]:
    """
    Derive relationships from column naming conventions.

    ``customer_id``, ``customerid``, ``customer_fk`` and ``fk_customer`` all
    point at table ``customer`` (or ``customers``) on its ``id`` column. A
    table's own ``id`` and ``<table>_id`` are skipped, as are columns already
    covered by a declared foreign key.
    """
    by_name: Dict[str, TableInfo] = {}
    for table in tables:
        by_name.setdefault(table.name.lower(), table)

    covered: Set[Tuple[str, str]] = set()
    for rel in existing:
        for col in rel.foreign_columns:
            covered.add((rel.table_from.lower(), col.lower()))

    inferred: List[RelationshipInfo] = []
    for table in tables:
        own_key = f"{table.name.lower()}_id"
        for column in table.columns:
            lower = column.name.lower()
            if lower == "id" or lower == own_key:
                continue
            if (table.name.lower(), lower) in covered:
                continue
            candidate = _referenced_name(column.name)
            if not candidate:
                continue
            target = _resolve_referenced_table(candidate, by_name)
            if target is None:
                continue
            rel = RelationshipInfo(
                name=f"inferred_fk_{table.name}_{column.name}",
                schema_from=table.schema,
                table_from=table.name,
                foreign_columns=[column.name],
                schema_to=target.schema,
                table_to=target.name,
                key_columns=["id"],
            )
            logger.debug(f"Inferred {rel.full_table_from}.{column.name} -> {rel.full_table_to}.id")
            inferred.append(rel)
    if inferred:
        logger.info(f"Inferred {len(inferred)} relationship(s) from column names")
    return inferred
