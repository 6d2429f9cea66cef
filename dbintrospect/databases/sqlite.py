"""SQLite metadata dialect. Catalog data comes from sqlite_master and PRAGMAs."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection

from ..models import ColumnInfo, IndexInfo
from ..relationships import ForeignKeyRow
from .base import MetadataDialect

logger = logging.getLogger(__name__)


class SqliteDialect(MetadataDialect):
    """SQLite metadata dialect. Has no functions or procedures."""

    name = "sqlite"
    default_driver = "sqlite"

    def quote_identifier(self, name: str) -> str:
        return '"' + name.replace('"', '""') + '"'

    def default_schema(self) -> str:
        return "main"

    def resolve_default_schema(self, conn: Connection) -> Optional[str]:
        return "main"

    def engine_kwargs(self, connect_timeout: int) -> Dict[str, Any]:
        return {"connect_args": {"timeout": connect_timeout, "check_same_thread": False}}

    def _pragma(self, conn: Connection, schema: str, pragma: str, arg: str):
        prefix = f"{self.quote_identifier(schema)}." if schema else ""
        return conn.execute(text(f"PRAGMA {prefix}{pragma}({self.quote_identifier(arg)})")).fetchall()

    def _master(self, conn: Connection, schema: str, kind: str) -> List[str]:
        master = f"{self.quote_identifier(schema)}.sqlite_master" if schema else "sqlite_master"
        query = text(
            f"SELECT name FROM {master} "
            "WHERE type = :kind AND name NOT LIKE 'sqlite_%' ORDER BY name"
        )
        return [row[0] for row in conn.execute(query, {"kind": kind}).fetchall()]

    def fetch_tables(self, conn: Connection, schema: str) -> List[str]:
        return self._master(conn, schema, "table")

    def fetch_views(self, conn: Connection, schema: str) -> List[str]:
        return self._master(conn, schema, "view")

    def fetch_columns(self, conn: Connection, schema: str, table: str) -> List[ColumnInfo]:
        # table_info rows: cid, name, type, notnull, dflt_value, pk
        return [
            ColumnInfo(
                schema=schema,
                table=table,
                name=row[1],
                type=row[2] or "",
                nullable=not row[3] and not row[5],
                comment="",
            )
            for row in self._pragma(conn, schema, "table_info", table)
        ]

    def fetch_indexes(self, conn: Connection, schema: str, table: str) -> List[IndexInfo]:
        # index_list rows: seq, name, unique, origin, partial
        indexes = []
        for row in self._pragma(conn, schema, "index_list", table):
            index_name = row[1]
            if index_name.startswith("sqlite_autoindex_"):
                continue
            columns = [
                info[2]
                for info in sorted(self._pragma(conn, schema, "index_info", index_name), key=lambda r: r[0])
            ]
            indexes.append(IndexInfo(schema, table, index_name, columns, "unique" if row[2] else "btree"))
        indexes.sort(key=lambda i: i.name)
        return indexes

    def _primary_key_columns(self, conn: Connection, schema: str, table: str) -> List[str]:
        pk = [(row[5], row[1]) for row in self._pragma(conn, schema, "table_info", table) if row[5]]
        return [name for _, name in sorted(pk)]

    def fetch_foreign_key_rows(
        self, conn: Connection, schema: str, tables: List[str]
    ) -> List[ForeignKeyRow]:
        """
        SQLite only reports foreign keys per table, without constraint names.
        Rows are grouped by the PRAGMA's id and named fk_<table>_<referenced>_<id>.
        """
        result: List[ForeignKeyRow] = []
        for table in tables:
            # foreign_key_list rows: id, seq, table, from, to, on_update, on_delete, match
            rows = sorted(self._pragma(conn, schema, "foreign_key_list", table), key=lambda r: (r[0], r[1]))
            pk_cache: Dict[str, List[str]] = {}
            for row in rows:
                fk_id, seq, ref_table, from_col, to_col = row[0], row[1], row[2], row[3], row[4]
                if to_col is None:
                    # REFERENCES parent without a column list targets the parent's primary key
                    if ref_table not in pk_cache:
                        pk_cache[ref_table] = self._primary_key_columns(conn, schema, ref_table)
                    pk = pk_cache[ref_table]
                    to_col = pk[seq] if seq < len(pk) else "rowid"
                result.append(ForeignKeyRow(
                    constraint_name=f"fk_{table}_{ref_table}_{fk_id}",
                    from_schema=schema,
                    from_table=table,
                    from_column=from_col,
                    to_schema=schema,
                    to_table=ref_table,
                    to_column=to_col,
                ))
        return result
