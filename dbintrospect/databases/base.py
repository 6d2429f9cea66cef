"""
Metadata dialect base class.

Each engine (PostgreSQL, MySQL, SQL Server, SQLite) implements this interface
with its own catalog queries. Catalog methods take an open SQLAlchemy
connection so the extractor decides how connections are shared between
workers. Catalog failures propagate; analysis helpers never raise.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.engine import Connection

from ..models import ColumnInfo, IndexInfo, ProcedureParameter, ScalarFunctionInfo, StoredProcedureInfo
from ..relationships import ForeignKeyRow
from ..routines import DescribeResult, Unsupported

logger = logging.getLogger(__name__)


class MetadataDialect(ABC):
    """Abstract base for per-engine catalog access."""

    name = ""
    default_driver = ""

    @abstractmethod
    def quote_identifier(self, name: str) -> str:
        """Quote a single identifier (table, column, schema)."""
        pass

    def quote_table(self, schema: str, table: str) -> str:
        """Quote schema.table for use in FROM clauses."""
        if schema:
            return f"{self.quote_identifier(schema)}.{self.quote_identifier(table)}"
        return self.quote_identifier(table)

    @abstractmethod
    def default_schema(self) -> str:
        """Namespace used when neither a filter nor the server provides one."""
        pass

    def resolve_default_schema(self, conn: Connection) -> Optional[str]:
        """Ask the server for the session's current namespace. Override per engine."""
        return None

    def engine_kwargs(self, connect_timeout: int) -> Dict[str, Any]:
        """Extra keyword arguments for ``create_engine``."""
        return {
            "pool_size": 5,
            "max_overflow": 10,
            "pool_pre_ping": True,
            "connect_args": {"connect_timeout": connect_timeout},
        }

    def apply_statement_timeout(self, conn: Connection, seconds: Optional[int]) -> None:
        """Bound every statement on this connection. No-op where unsupported."""
        return None

    # Catalog

    @abstractmethod
    def fetch_tables(self, conn: Connection, schema: str) -> List[str]:
        """Base table names in the namespace, ordered by name."""
        pass

    @abstractmethod
    def fetch_views(self, conn: Connection, schema: str) -> List[str]:
        """View names in the namespace, ordered by name."""
        pass

    @abstractmethod
    def fetch_columns(self, conn: Connection, schema: str, table: str) -> List[ColumnInfo]:
        """Columns of one table in ordinal order."""
        pass

    @abstractmethod
    def fetch_indexes(self, conn: Connection, schema: str, table: str) -> List[IndexInfo]:
        """Secondary indexes of one table (primary keys excluded)."""
        pass

    @abstractmethod
    def fetch_foreign_key_rows(
        self, conn: Connection, schema: str, tables: List[str]
    ) -> List[ForeignKeyRow]:
        """Flat FK rows ordered by constraint name then column ordinal."""
        pass

    def fetch_scalar_functions(self, conn: Connection, schema: str) -> List[ScalarFunctionInfo]:
        """Scalar user-defined functions with their parameters. Empty where unsupported."""
        return []

    def fetch_procedures(self, conn: Connection, schema: str) -> List[StoredProcedureInfo]:
        """Stored procedures with parameters, not yet classified. Empty where unsupported."""
        return []

    # Procedure result shape

    def supports_result_description(self) -> bool:
        """Whether the engine can describe a procedure's first result set without running it."""
        return False

    def describe_first_result_set(self, conn: Connection, schema: str, name: str) -> DescribeResult:
        return Unsupported(f"{self.name} cannot describe procedure result sets")

    def fetch_routine_definition(self, conn: Connection, schema: str, name: str) -> Optional[str]:
        """Source text of a routine, or None when unavailable."""
        return None

    # Sampling queries

    def limit_clause(self, limit: int) -> str:
        """Return the row limit clause (e.g. 'LIMIT 25' or 'TOP 25')."""
        return f"LIMIT {int(limit)}"

    def build_distinct_sample_query(
        self, schema: str, table: str, column: str, limit: int
    ) -> Tuple[str, Dict[str, Any]]:
        """SELECT up to ``limit`` distinct values of one column. Returns (query, params)."""
        qt = self.quote_table(schema, table)
        qc = self.quote_identifier(column)
        lc = self.limit_clause(limit)
        if lc.startswith("TOP "):
            return (f"SELECT DISTINCT {lc} {qc} FROM {qt}", {})
        return (f"SELECT DISTINCT {qc} FROM {qt} {lc}", {})

    def build_non_null_sample_query(
        self, schema: str, table: str, column: str, limit: int
    ) -> Tuple[str, Dict[str, Any]]:
        """SELECT up to ``limit`` non-null values of one column. Returns (query, params)."""
        qt = self.quote_table(schema, table)
        qc = self.quote_identifier(column)
        lc = self.limit_clause(limit)
        if lc.startswith("TOP "):
            return (f"SELECT {lc} {qc} FROM {qt} WHERE {qc} IS NOT NULL", {})
        return (f"SELECT {qc} FROM {qt} WHERE {qc} IS NOT NULL {lc}", {})

    # Shared decoding helpers

    @staticmethod
    def _strip_param_prefix(name: Optional[str]) -> str:
        return (name or "").lstrip("@")

    def _procedure_parameters(self, rows) -> List[ProcedureParameter]:
        """Decode (name, type, ordinal, mode) rows from information_schema.parameters."""
        params = []
        for row in rows:
            mode = (row[3] or "IN").upper()
            params.append(ProcedureParameter(
                name=self._strip_param_prefix(row[0]),
                data_type=row[1] or "",
                ordinal_position=int(row[2]),
                is_output=mode in ("OUT", "INOUT"),
                has_default=False,
            ))
        return params
