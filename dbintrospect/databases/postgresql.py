"""PostgreSQL metadata dialect."""

import logging
from typing import List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection

from ..models import ColumnInfo, FunctionParameter, IndexInfo, ScalarFunctionInfo, StoredProcedureInfo
from ..relationships import ForeignKeyRow
from .base import MetadataDialect

logger = logging.getLogger(__name__)


class PostgresqlDialect(MetadataDialect):
    """PostgreSQL metadata dialect."""

    name = "postgresql"
    default_driver = "postgresql+psycopg2"

    def quote_identifier(self, name: str) -> str:
        return '"' + name.replace('"', '""') + '"'

    def default_schema(self) -> str:
        return "public"

    def resolve_default_schema(self, conn: Connection) -> Optional[str]:
        return conn.execute(text("SELECT current_schema()")).scalar()

    def apply_statement_timeout(self, conn: Connection, seconds: Optional[int]) -> None:
        if seconds:
            conn.execute(text(f"SET statement_timeout = {int(seconds) * 1000}"))

    def fetch_tables(self, conn: Connection, schema: str) -> List[str]:
        query = text("""
            SELECT table_name
            FROM information_schema.tables
            WHERE table_schema = :schema AND table_type = 'BASE TABLE'
            ORDER BY table_name
        """)
        return [row[0] for row in conn.execute(query, {"schema": schema}).fetchall()]

    def fetch_views(self, conn: Connection, schema: str) -> List[str]:
        query = text("""
            SELECT table_name
            FROM information_schema.views
            WHERE table_schema = :schema
            ORDER BY table_name
        """)
        return [row[0] for row in conn.execute(query, {"schema": schema}).fetchall()]

    def fetch_columns(self, conn: Connection, schema: str, table: str) -> List[ColumnInfo]:
        query = text("""
            SELECT a.attname AS column_name,
                   format_type(a.atttypid, a.atttypmod) AS data_type,
                   NOT a.attnotnull AS is_nullable,
                   COALESCE(col_description(a.attrelid, a.attnum), '') AS column_comment
            FROM pg_attribute a
            JOIN pg_class c ON c.oid = a.attrelid
            JOIN pg_namespace n ON n.oid = c.relnamespace
            WHERE n.nspname = :schema
              AND c.relname = :table
              AND a.attnum > 0
              AND NOT a.attisdropped
            ORDER BY a.attnum
        """)
        return [
            ColumnInfo(
                schema=schema,
                table=table,
                name=row[0],
                type=row[1],
                nullable=bool(row[2]),
                comment=row[3] or "",
            )
            for row in conn.execute(query, {"schema": schema, "table": table}).fetchall()
        ]

    def fetch_indexes(self, conn: Connection, schema: str, table: str) -> List[IndexInfo]:
        query = text("""
            SELECT i.relname AS index_name,
                   ix.indisunique AS is_unique,
                   a.attname AS column_name
            FROM pg_index ix
            JOIN pg_class i ON ix.indexrelid = i.oid
            JOIN pg_class t ON ix.indrelid = t.oid
            JOIN pg_namespace n ON t.relnamespace = n.oid
            JOIN LATERAL unnest(ix.indkey) WITH ORDINALITY AS k(attnum, ord) ON true
            JOIN pg_attribute a ON a.attrelid = t.oid AND a.attnum = k.attnum
            WHERE n.nspname = :schema
              AND t.relname = :table
              AND NOT ix.indisprimary
            ORDER BY i.relname, k.ord
        """)
        indexes = {}
        for row in conn.execute(query, {"schema": schema, "table": table}).fetchall():
            idx = indexes.get(row[0])
            if idx is None:
                idx = IndexInfo(schema, table, row[0], [], "unique" if row[1] else "btree")
                indexes[row[0]] = idx
            idx.columns.append(row[2])
        return list(indexes.values())

    def fetch_foreign_key_rows(
        self, conn: Connection, schema: str, tables: List[str]
    ) -> List[ForeignKeyRow]:
        # pg_constraint keeps conkey/confkey aligned, which information_schema
        # does not guarantee for composite keys.
        query = text("""
            SELECT con.conname AS constraint_name,
                   src_ns.nspname AS table_schema,
                   src.relname AS table_name,
                   src_att.attname AS column_name,
                   ref_ns.nspname AS referenced_schema,
                   ref.relname AS referenced_table,
                   ref_att.attname AS referenced_column
            FROM pg_constraint con
            JOIN pg_class src ON src.oid = con.conrelid
            JOIN pg_namespace src_ns ON src_ns.oid = src.relnamespace
            JOIN pg_class ref ON ref.oid = con.confrelid
            JOIN pg_namespace ref_ns ON ref_ns.oid = ref.relnamespace
            JOIN LATERAL unnest(con.conkey, con.confkey) WITH ORDINALITY AS k(src_attnum, ref_attnum, ord) ON true
            JOIN pg_attribute src_att ON src_att.attrelid = con.conrelid AND src_att.attnum = k.src_attnum
            JOIN pg_attribute ref_att ON ref_att.attrelid = con.confrelid AND ref_att.attnum = k.ref_attnum
            WHERE con.contype = 'f'
              AND src_ns.nspname = :schema
            ORDER BY con.conname, src.relname, k.ord
        """)
        return [
            ForeignKeyRow(*row)
            for row in conn.execute(query, {"schema": schema}).fetchall()
        ]

    def fetch_scalar_functions(self, conn: Connection, schema: str) -> List[ScalarFunctionInfo]:
        query = text("""
            SELECT n.nspname AS schema_name,
                   p.proname AS function_name,
                   pg_get_function_result(p.oid) AS return_type,
                   p.oid::regprocedure::text AS signature,
                   p.oid AS function_oid
            FROM pg_proc p
            JOIN pg_namespace n ON p.pronamespace = n.oid
            WHERE n.nspname = :schema
              AND p.prokind = 'f'
              AND p.proretset = false
              AND NOT EXISTS (SELECT 1 FROM pg_aggregate WHERE aggfnoid = p.oid)
            ORDER BY p.proname, signature
        """)
        params_query = text("""
            SELECT COALESCE(p.parameter_name, 'p' || p.ordinal_position::text) AS param_name,
                   p.data_type,
                   p.ordinal_position
            FROM information_schema.parameters p
            WHERE p.specific_schema = :schema
              AND p.specific_name = :specific_name
              AND p.parameter_mode IN ('IN', 'INOUT')
            ORDER BY p.ordinal_position
        """)
        functions = []
        for row in conn.execute(query, {"schema": schema}).fetchall():
            # information_schema names overloads as <name>_<oid>
            specific_name = f"{row[1]}_{row[4]}"
            params = [
                FunctionParameter(name=p[0], data_type=p[1], ordinal_position=int(p[2]))
                for p in conn.execute(
                    params_query, {"schema": schema, "specific_name": specific_name}
                ).fetchall()
            ]
            functions.append(ScalarFunctionInfo(
                schema=row[0], name=row[1], return_type=row[2] or "", parameters=params,
            ))
        return functions

    def fetch_procedures(self, conn: Connection, schema: str) -> List[StoredProcedureInfo]:
        query = text("""
            SELECT r.routine_schema, r.routine_name, r.specific_name
            FROM information_schema.routines r
            WHERE r.routine_schema = :schema
              AND r.routine_type = 'PROCEDURE'
            ORDER BY r.routine_name, r.specific_name
        """)
        params_query = text("""
            SELECT COALESCE(p.parameter_name, 'p' || p.ordinal_position::text) AS param_name,
                   p.data_type,
                   p.ordinal_position,
                   p.parameter_mode
            FROM information_schema.parameters p
            WHERE p.specific_schema = :schema
              AND p.specific_name = :specific_name
            ORDER BY p.ordinal_position
        """)
        procedures = []
        for row in conn.execute(query, {"schema": schema}).fetchall():
            param_rows = conn.execute(
                params_query, {"schema": schema, "specific_name": row[2]}
            ).fetchall()
            procedures.append(StoredProcedureInfo(
                schema=row[0], name=row[1], parameters=self._procedure_parameters(param_rows),
            ))
        return procedures

    def fetch_routine_definition(self, conn: Connection, schema: str, name: str) -> Optional[str]:
        query = text("""
            SELECT r.routine_definition
            FROM information_schema.routines r
            WHERE r.routine_schema = :schema AND r.routine_name = :name
        """)
        return conn.execute(query, {"schema": schema, "name": name}).scalar()
