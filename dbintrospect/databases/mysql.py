"""MySQL / MariaDB metadata dialect. The namespace is the database name."""

import logging
from typing import List, Optional

from sqlalchemy import text
from sqlalchemy.engine import Connection

from ..models import ColumnInfo, FunctionParameter, IndexInfo, ScalarFunctionInfo, StoredProcedureInfo
from ..relationships import ForeignKeyRow
from .base import MetadataDialect

logger = logging.getLogger(__name__)


class MysqlDialect(MetadataDialect):
    """MySQL / MariaDB metadata dialect."""

    name = "mysql"
    default_driver = "mysql+pymysql"

    def quote_identifier(self, name: str) -> str:
        return "`" + name.replace("`", "``") + "`"

    def default_schema(self) -> str:
        return ""

    def resolve_default_schema(self, conn: Connection) -> Optional[str]:
        return conn.execute(text("SELECT DATABASE()")).scalar()

    def apply_statement_timeout(self, conn: Connection, seconds: Optional[int]) -> None:
        if not seconds:
            return
        try:
            conn.execute(text(f"SET SESSION MAX_EXECUTION_TIME = {int(seconds) * 1000}"))
        except Exception as e:
            # MariaDB names it max_statement_time, in seconds
            logger.debug(f"MAX_EXECUTION_TIME not accepted, trying max_statement_time: {e}")
            conn.execute(text(f"SET SESSION max_statement_time = {int(seconds)}"))

    def fetch_tables(self, conn: Connection, schema: str) -> List[str]:
        query = text("""
            SELECT TABLE_NAME
            FROM INFORMATION_SCHEMA.TABLES
            WHERE TABLE_SCHEMA = :schema AND TABLE_TYPE = 'BASE TABLE'
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
            SELECT COLUMN_NAME,
                   COLUMN_TYPE,
                   IS_NULLABLE,
                   COALESCE(COLUMN_COMMENT, '') AS column_comment
            FROM INFORMATION_SCHEMA.COLUMNS
            WHERE TABLE_SCHEMA = :schema AND TABLE_NAME = :table
            ORDER BY ORDINAL_POSITION
        """)
        return [
            ColumnInfo(
                schema=schema,
                table=table,
                name=row[0],
                type=row[1],
                nullable=row[2] == "YES",
                comment=row[3] or "",
            )
            for row in conn.execute(query, {"schema": schema, "table": table}).fetchall()
        ]

    def fetch_indexes(self, conn: Connection, schema: str, table: str) -> List[IndexInfo]:
        query = text("""
            SELECT INDEX_NAME, COLUMN_NAME, NON_UNIQUE, INDEX_TYPE
            FROM INFORMATION_SCHEMA.STATISTICS
            WHERE TABLE_SCHEMA = :schema
              AND TABLE_NAME = :table
              AND INDEX_NAME != 'PRIMARY'
            ORDER BY INDEX_NAME, SEQ_IN_INDEX
        """)
        indexes = {}
        for row in conn.execute(query, {"schema": schema, "table": table}).fetchall():
            idx = indexes.get(row[0])
            if idx is None:
                kind = "unique" if not int(row[2]) else (row[3] or "index").lower()
                idx = IndexInfo(schema, table, row[0], [], kind)
                indexes[row[0]] = idx
            idx.columns.append(row[1])
        return list(indexes.values())

    def fetch_foreign_key_rows(
        self, conn: Connection, schema: str, tables: List[str]
    ) -> List[ForeignKeyRow]:
        query = text("""
            SELECT CONSTRAINT_NAME,
                   TABLE_SCHEMA,
                   TABLE_NAME,
                   COLUMN_NAME,
                   REFERENCED_TABLE_SCHEMA,
                   REFERENCED_TABLE_NAME,
                   REFERENCED_COLUMN_NAME
            FROM INFORMATION_SCHEMA.KEY_COLUMN_USAGE
            WHERE TABLE_SCHEMA = :schema
              AND REFERENCED_TABLE_NAME IS NOT NULL
            ORDER BY CONSTRAINT_NAME, ORDINAL_POSITION
        """)
        return [
            ForeignKeyRow(*row)
            for row in conn.execute(query, {"schema": schema}).fetchall()
        ]

    def fetch_scalar_functions(self, conn: Connection, schema: str) -> List[ScalarFunctionInfo]:
        query = text("""
            SELECT ROUTINE_SCHEMA, ROUTINE_NAME, DTD_IDENTIFIER
            FROM INFORMATION_SCHEMA.ROUTINES
            WHERE ROUTINE_SCHEMA = :schema
              AND ROUTINE_TYPE = 'FUNCTION'
            ORDER BY ROUTINE_NAME
        """)
        params_query = text("""
            SELECT PARAMETER_NAME, DTD_IDENTIFIER, ORDINAL_POSITION
            FROM INFORMATION_SCHEMA.PARAMETERS
            WHERE SPECIFIC_SCHEMA = :schema
              AND SPECIFIC_NAME = :name
              AND ROUTINE_TYPE = 'FUNCTION'
              AND PARAMETER_MODE = 'IN'
            ORDER BY ORDINAL_POSITION
        """)
        functions = []
        for row in conn.execute(query, {"schema": schema}).fetchall():
            params = [
                FunctionParameter(name=p[0] or "", data_type=p[1] or "", ordinal_position=int(p[2]))
                for p in conn.execute(params_query, {"schema": schema, "name": row[1]}).fetchall()
            ]
            functions.append(ScalarFunctionInfo(
                schema=row[0], name=row[1], return_type=row[2] or "", parameters=params,
            ))
        return functions

    def fetch_procedures(self, conn: Connection, schema: str) -> List[StoredProcedureInfo]:
        query = text("""
            SELECT ROUTINE_SCHEMA, ROUTINE_NAME
            FROM INFORMATION_SCHEMA.ROUTINES
            WHERE ROUTINE_SCHEMA = :schema
              AND ROUTINE_TYPE = 'PROCEDURE'
            ORDER BY ROUTINE_NAME
        """)
        params_query = text("""
            SELECT PARAMETER_NAME, DTD_IDENTIFIER, ORDINAL_POSITION, PARAMETER_MODE
            FROM INFORMATION_SCHEMA.PARAMETERS
            WHERE SPECIFIC_SCHEMA = :schema
              AND SPECIFIC_NAME = :name
              AND ROUTINE_TYPE = 'PROCEDURE'
            ORDER BY ORDINAL_POSITION
        """)
        procedures = []
        for row in conn.execute(query, {"schema": schema}).fetchall():
            param_rows = conn.execute(params_query, {"schema": schema, "name": row[1]}).fetchall()
            procedures.append(StoredProcedureInfo(
                schema=row[0], name=row[1], parameters=self._procedure_parameters(param_rows),
            ))
        return procedures

    def fetch_routine_definition(self, conn: Connection, schema: str, name: str) -> Optional[str]:
        query = text("""
            SELECT ROUTINE_DEFINITION
            FROM INFORMATION_SCHEMA.ROUTINES
            WHERE ROUTINE_SCHEMA = :schema AND ROUTINE_NAME = :name
        """)
        return conn.execute(query, {"schema": schema, "name": name}).scalar()
