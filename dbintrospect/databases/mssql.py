"""Microsoft SQL Server / Azure SQL metadata dialect."""

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection

from ..models import (
    ColumnInfo,
    FunctionParameter,
    IndexInfo,
    ProcedureParameter,
    ResultColumn,
    ScalarFunctionInfo,
    StoredProcedureInfo,
)
from ..relationships import ForeignKeyRow
from ..routines import Described, DescribeResult, Unsupported
from .base import MetadataDialect

logger = logging.getLogger(__name__)

_LENGTH_TYPES = ("char", "varchar", "nchar", "nvarchar", "binary", "varbinary")
_PRECISION_TYPES = ("decimal", "numeric")


def _compose_type(data_type: str, max_length: Any, precision: Any, scale: Any) -> str:
    """Rebuild the declared type, e.g. nvarchar(36), varchar(max), decimal(10,2)."""
    base = (data_type or "").lower()
    if base in _LENGTH_TYPES and max_length is not None:
        length = "max" if int(max_length) == -1 else str(int(max_length))
        return f"{data_type}({length})"
    if base in _PRECISION_TYPES and precision is not None:
        return f"{data_type}({int(precision)},{int(scale or 0)})"
    return data_type


class MssqlDialect(MetadataDialect):
    """Microsoft SQL Server / Azure SQL metadata dialect."""

    name = "mssql"
    default_driver = "mssql+pyodbc"

    def quote_identifier(self, name: str) -> str:
        return "[" + name.replace("]", "]]") + "]"

    def default_schema(self) -> str:
        return "dbo"

    def resolve_default_schema(self, conn: Connection) -> Optional[str]:
        return conn.execute(text("SELECT SCHEMA_NAME()")).scalar()

    def engine_kwargs(self, connect_timeout: int) -> Dict[str, Any]:
        kwargs = super().engine_kwargs(connect_timeout)
        kwargs["connect_args"] = {"timeout": connect_timeout}
        return kwargs

    def apply_statement_timeout(self, conn: Connection, seconds: Optional[int]) -> None:
        if not seconds:
            return
        conn.execute(text(f"SET LOCK_TIMEOUT {int(seconds) * 1000}"))
        dbapi_conn = conn.connection.dbapi_connection
        if hasattr(dbapi_conn, "timeout"):
            # pyodbc query timeout, in seconds
            dbapi_conn.timeout = int(seconds)

    def limit_clause(self, limit: int) -> str:
        return f"TOP {int(limit)}"

    def fetch_tables(self, conn: Connection, schema: str) -> List[str]:
        query = text("""
            SELECT TABLE_NAME
            FROM INFORMATION_SCHEMA.TABLES
            WHERE TABLE_TYPE = 'BASE TABLE' AND TABLE_SCHEMA = :schema
            ORDER BY TABLE_NAME
        """)
        return [row[0] for row in conn.execute(query, {"schema": schema}).fetchall()]

    def fetch_views(self, conn: Connection, schema: str) -> List[str]:
        query = text("""
            SELECT TABLE_NAME
            FROM INFORMATION_SCHEMA.VIEWS
            WHERE TABLE_SCHEMA = :schema
            ORDER BY TABLE_NAME
        """)
        return [row[0] for row in conn.execute(query, {"schema": schema}).fetchall()]

    def fetch_columns(self, conn: Connection, schema: str, table: str) -> List[ColumnInfo]:
        query = text("""
            SELECT c.COLUMN_NAME,
                   c.DATA_TYPE,
                   c.IS_NULLABLE,
                   ISNULL(CAST(ep.value AS NVARCHAR(MAX)), '') AS column_comment,
                   c.CHARACTER_MAXIMUM_LENGTH,
                   c.NUMERIC_PRECISION,
                   c.NUMERIC_SCALE
            FROM INFORMATION_SCHEMA.COLUMNS c
            LEFT JOIN sys.columns sc ON sc.name = c.COLUMN_NAME
                AND sc.object_id = OBJECT_ID(QUOTENAME(c.TABLE_SCHEMA) + '.' + QUOTENAME(c.TABLE_NAME))
            LEFT JOIN sys.extended_properties ep ON ep.major_id = sc.object_id
                AND ep.minor_id = sc.column_id AND ep.name = 'MS_Description'
            WHERE c.TABLE_SCHEMA = :schema AND c.TABLE_NAME = :table
            ORDER BY c.ORDINAL_POSITION
        """)
        return [
            ColumnInfo(
                schema=schema,
                table=table,
                name=row[0],
                type=_compose_type(row[1], row[4], row[5], row[6]),
                nullable=row[2] == "YES",
                comment=row[3] or "",
            )
            for row in conn.execute(query, {"schema": schema, "table": table}).fetchall()
        ]

    def fetch_indexes(self, conn: Connection, schema: str, table: str) -> List[IndexInfo]:
        query = text("""
            SELECT i.name AS index_name,
                   i.is_unique,
                   i.type_desc,
                   c.name AS column_name
            FROM sys.indexes i
            INNER JOIN sys.index_columns ic ON i.object_id = ic.object_id AND i.index_id = ic.index_id
            INNER JOIN sys.columns c ON ic.object_id = c.object_id AND ic.column_id = c.column_id
            INNER JOIN sys.tables t ON i.object_id = t.object_id
            INNER JOIN sys.schemas s ON t.schema_id = s.schema_id
            WHERE s.name = :schema
              AND t.name = :table
              AND i.is_primary_key = 0
              AND i.name IS NOT NULL
              AND ic.is_included_column = 0
            ORDER BY i.name, ic.key_ordinal
        """)
        indexes = {}
        for row in conn.execute(query, {"schema": schema, "table": table}).fetchall():
            idx = indexes.get(row[0])
            if idx is None:
                kind = (row[2] or "nonclustered").lower()
                if row[1]:
                    kind = f"unique {kind}"
                idx = IndexInfo(schema, table, row[0], [], kind)
                indexes[row[0]] = idx
            idx.columns.append(row[3])
        return list(indexes.values())

    def fetch_foreign_key_rows(
        self, conn: Connection, schema: str, tables: List[str]
    ) -> List[ForeignKeyRow]:
        query = text("""
            SELECT fk.name AS constraint_name,
                   SCHEMA_NAME(t.schema_id) AS table_schema,
                   t.name AS table_name,
                   c.name AS column_name,
                   SCHEMA_NAME(rt.schema_id) AS referenced_schema,
                   rt.name AS referenced_table,
                   rc.name AS referenced_column
            FROM sys.foreign_keys fk
            INNER JOIN sys.foreign_key_columns fkc ON fk.object_id = fkc.constraint_object_id
            INNER JOIN sys.tables t ON fkc.parent_object_id = t.object_id
            INNER JOIN sys.columns c ON fkc.parent_object_id = c.object_id AND fkc.parent_column_id = c.column_id
            INNER JOIN sys.tables rt ON fkc.referenced_object_id = rt.object_id
            INNER JOIN sys.columns rc ON fkc.referenced_object_id = rc.object_id AND fkc.referenced_column_id = rc.column_id
            WHERE SCHEMA_NAME(t.schema_id) = :schema
            ORDER BY fk.name, fkc.constraint_column_id
        """)
        return [
            ForeignKeyRow(*row)
            for row in conn.execute(query, {"schema": schema}).fetchall()
        ]

    def fetch_scalar_functions(self, conn: Connection, schema: str) -> List[ScalarFunctionInfo]:
        query = text("""
            SELECT SCHEMA_NAME(o.schema_id) AS schema_name,
                   o.name AS function_name,
                   TYPE_NAME(r.user_type_id) AS return_type
            FROM sys.objects o
            JOIN sys.sql_modules m ON o.object_id = m.object_id
            LEFT JOIN sys.parameters r ON o.object_id = r.object_id AND r.parameter_id = 0
            WHERE o.type = 'FN'
              AND SCHEMA_NAME(o.schema_id) = :schema
            ORDER BY o.name
        """)
        params_query = text("""
            SELECT p.name AS param_name,
                   TYPE_NAME(p.user_type_id) AS data_type,
                   p.parameter_id
            FROM sys.parameters p
            JOIN sys.objects o ON p.object_id = o.object_id
            WHERE SCHEMA_NAME(o.schema_id) = :schema
              AND o.name = :name
              AND p.parameter_id > 0
            ORDER BY p.parameter_id
        """)
        functions = []
        for row in conn.execute(query, {"schema": schema}).fetchall():
            params = [
                FunctionParameter(
                    name=self._strip_param_prefix(p[0]), data_type=p[1], ordinal_position=int(p[2]),
                )
                for p in conn.execute(params_query, {"schema": row[0], "name": row[1]}).fetchall()
            ]
            functions.append(ScalarFunctionInfo(
                schema=row[0], name=row[1], return_type=row[2] or "sql_variant", parameters=params,
            ))
        return functions

    def fetch_procedures(self, conn: Connection, schema: str) -> List[StoredProcedureInfo]:
        query = text("""
            SELECT SCHEMA_NAME(p.schema_id) AS schema_name, p.name AS procedure_name
            FROM sys.procedures p
            WHERE SCHEMA_NAME(p.schema_id) = :schema
            ORDER BY p.name
        """)
        params_query = text("""
            SELECT p.name AS param_name,
                   TYPE_NAME(p.user_type_id) AS data_type,
                   p.parameter_id,
                   p.is_output,
                   p.has_default_value
            FROM sys.parameters p
            JOIN sys.procedures proc ON p.object_id = proc.object_id
            WHERE SCHEMA_NAME(proc.schema_id) = :schema
              AND proc.name = :name
              AND p.parameter_id > 0
            ORDER BY p.parameter_id
        """)
        procedures = []
        for row in conn.execute(query, {"schema": schema}).fetchall():
            params = [
                ProcedureParameter(
                    name=self._strip_param_prefix(p[0]),
                    data_type=p[1],
                    ordinal_position=int(p[2]),
                    is_output=bool(p[3]),
                    has_default=bool(p[4]),
                )
                for p in conn.execute(params_query, {"schema": row[0], "name": row[1]}).fetchall()
            ]
            procedures.append(StoredProcedureInfo(schema=row[0], name=row[1], parameters=params))
        return procedures

    def supports_result_description(self) -> bool:
        return True

    def describe_first_result_set(self, conn: Connection, schema: str, name: str) -> DescribeResult:
        query = text("""
            SELECT name, system_type_name, is_nullable, column_ordinal, error_number, error_message
            FROM sys.dm_exec_describe_first_result_set_for_object(OBJECT_ID(:full_name), NULL)
            ORDER BY column_ordinal
        """)
        try:
            rows = conn.execute(query, {"full_name": self.quote_table(schema, name)}).fetchall()
        except Exception as e:
            return Unsupported(str(e))
        columns = []
        for row in rows:
            if row[4] is not None:
                return Unsupported(row[5] or f"error {row[4]}")
            if row[0] is None:
                continue
            columns.append(ResultColumn(
                name=row[0],
                data_type=row[1] or "",
                nullable=bool(row[2]),
                ordinal_position=int(row[3]),
            ))
        return Described(columns)

    def fetch_routine_definition(self, conn: Connection, schema: str, name: str) -> Optional[str]:
        query = text("""
            SELECT m.definition
            FROM sys.sql_modules m
            JOIN sys.procedures p ON m.object_id = p.object_id
            WHERE SCHEMA_NAME(p.schema_id) = :schema
              AND p.name = :name
        """)
        return conn.execute(query, {"schema": schema, "name": name}).scalar()
