"""Build a DatabaseSchema offline from CSV exports of columns, relationships and indexes."""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import Any, Iterable

from .errors import ConfigurationError
from .inference.chain import TypeInferenceChain
from .models import ColumnInfo, DatabaseSchema, IndexInfo, RelationshipInfo, TableInfo
from .relationships import populate_table_relationships

logger = logging.getLogger(__name__)


def _norm_header(name: str) -> str:
    return str(name or "").strip().lower().replace(" ", "_")


def _as_bool(value: Any, default: bool = False) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    s = str(value).strip().lower()
    return s in {"1", "true", "t", "yes", "y"}


def _validate_delimiter(delimiter: str | None) -> str | None:
    if delimiter is None:
        return None
    if len(delimiter) != 1:
        raise ConfigurationError("Delimiter must be a single character (for example ',', ';', '|', or '\\t').")
    return delimiter


def _detect_csv_delimiter(path: Path, fallback: str = ",") -> str:
    with path.open("r", encoding="utf-8-sig", newline="") as f:
        sample = f.read(8192)
    if not sample:
        return fallback
    try:
        dialect = csv.Sniffer().sniff(sample, delimiters=",;\t|")
        return dialect.delimiter
    except csv.Error:
        return fallback


def _read_csv(path: str | Path, delimiter: str | None = None) -> list[dict[str, Any]]:
    p = Path(path)
    if not p.exists():
        raise ConfigurationError(f"CSV file not found: {path}")
    resolved = _validate_delimiter(delimiter) or _detect_csv_delimiter(p)
    with p.open("r", encoding="utf-8-sig", newline="") as f:
        reader = csv.DictReader(f, delimiter=resolved)
        out: list[dict[str, Any]] = []
        for row in reader:
            out.append({_norm_header(k): (v.strip() if isinstance(v, str) else v) for k, v in row.items()})
        return out


def _get(row: dict[str, Any], *keys: str, default: Any = None) -> Any:
    for k in keys:
        if k in row and row.get(k) not in (None, ""):
            return row.get(k)
    return default


def _split_list(value: Any) -> list[str]:
    return [part.strip() for part in str(value or "").split(",") if part.strip()]


def _split_qualified(name: str) -> tuple[str, str]:
    """'sales.orders' -> ('sales', 'orders'); 'orders' -> ('', 'orders')."""
    if "." in name:
        schema, _, table = name.rpartition(".")
        return schema, table
    return "", name


def read_columns(path: str | Path, delimiter: str | None = None) -> list[ColumnInfo]:
    """Columns file headers: schema, table, column, nullable, type, comment."""
    columns = []
    for line, row in enumerate(_read_csv(path, delimiter), start=2):
        table = _get(row, "table", "table_name")
        name = _get(row, "column", "column_name", "name")
        if not table or not name:
            logger.warning(f"{path}:{line}: skipped row without table or column")
            continue
        columns.append(ColumnInfo(
            schema=_get(row, "schema", "table_schema", default=""),
            table=table,
            name=name,
            type=_get(row, "type", "data_type", default=""),
            nullable=_as_bool(_get(row, "nullable", "is_nullable"), default=True),
            comment=_get(row, "comment", "description", default=""),
        ))
    return columns


def read_relationships(path: str | Path, delimiter: str | None = None) -> list[RelationshipInfo]:
    """
    Relationships file, in either layout:

    - name, schema_from, table_from, schema_to, table_to, key, foreign
    - from, to, keys, foreignkeys (tables optionally schema-qualified)

    ``key`` lists the referenced columns and ``foreign`` the referencing ones,
    comma-separated and aligned by position.
    """
    relationships = []
    for line, row in enumerate(_read_csv(path, delimiter), start=2):
        if _get(row, "table_from"):
            schema_from, table_from = _get(row, "schema_from", default=""), _get(row, "table_from")
            schema_to, table_to = _get(row, "schema_to", default=""), _get(row, "table_to", default="")
        else:
            schema_from, table_from = _split_qualified(_get(row, "from", default=""))
            schema_to, table_to = _split_qualified(_get(row, "to", default=""))
        key_columns = _split_list(_get(row, "key", "keys"))
        foreign_columns = _split_list(_get(row, "foreign", "foreignkeys", "foreign_keys"))
        if not table_from or not table_to:
            logger.warning(f"{path}:{line}: skipped relationship without source or target table")
            continue
        if len(key_columns) != len(foreign_columns) or not key_columns:
            raise ConfigurationError(
                f"{path}:{line}: key and foreign column lists must be non-empty and of equal length"
            )
        relationships.append(RelationshipInfo(
            name=_get(row, "name", default=f"fk_{table_from}_{table_to}_{len(relationships)}"),
            schema_from=schema_from,
            table_from=table_from,
            foreign_columns=foreign_columns,
            schema_to=schema_to,
            table_to=table_to,
            key_columns=key_columns,
        ))
    return relationships


def read_indexes(path: str | Path, delimiter: str | None = None) -> list[IndexInfo]:
    """Indexes file headers: schema, table, name, key, type."""
    indexes = []
    for row in _read_csv(path, delimiter):
        table = _get(row, "table", "table_name")
        name = _get(row, "name", "index_name")
        if not table or not name:
            continue
        indexes.append(IndexInfo(
            schema=_get(row, "schema", default=""),
            table=table,
            name=name,
            columns=_split_list(_get(row, "key", "columns")),
            kind=_get(row, "type", "kind", default=""),
        ))
    return indexes


def build_schema(
    columns: Iterable[ColumnInfo],
    relationships: Iterable[RelationshipInfo] = (),
    indexes: Iterable[IndexInfo] = (),
    chain: TypeInferenceChain | None = None,
    engine: str = "",
) -> DatabaseSchema:
    """Group columns into tables (first-appearance order) and attach indexes and relationships."""
    tables: dict[tuple[str, str], TableInfo] = {}
    for col in columns:
        key = ((col.schema or "").lower(), col.table.lower())
        table = tables.get(key)
        if table is None:
            table = TableInfo(schema=col.schema or "", name=col.table)
            tables[key] = table
        if chain is not None:
            col.resolved_type = chain.resolve(col, engine)
        table.columns.append(col)

    for idx in indexes:
        table = tables.get(((idx.schema or "").lower(), idx.table.lower()))
        if table is None:
            logger.warning(f"Index '{idx.name}' refers to unknown table '{idx.table}'")
            continue
        table.indexes.append(idx)

    schema = DatabaseSchema(
        tables=list(tables.values()),
        relationships=list(relationships),
        engine=engine,
    )
    populate_table_relationships(schema.tables, schema.relationships)
    return schema


def load_schema(
    columns_path: str | Path,
    relationships_path: str | Path | None = None,
    indexes_path: str | Path | None = None,
    delimiter: str | None = None,
    chain: TypeInferenceChain | None = None,
) -> DatabaseSchema:
    columns = read_columns(columns_path, delimiter)
    relationships = read_relationships(relationships_path, delimiter) if relationships_path else []
    indexes = read_indexes(indexes_path, delimiter) if indexes_path else []
    logger.info(
        f"Loaded {len(columns)} columns, {len(relationships)} relationships, {len(indexes)} indexes from CSV"
    )
    return build_schema(columns, relationships, indexes, chain=chain)
