"""
Data models for the extracted database schema.

The model is engine independent: dialects decode catalog rows into these
types, and the CSV builder produces the same shapes offline.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


class LogicalType(str, Enum):
    """Engine-neutral output type chosen for a column."""

    BOOL = "bool"
    BYTE = "byte"
    SHORT = "short"
    INT = "int"
    LONG = "long"
    DECIMAL = "decimal"
    DOUBLE = "double"
    FLOAT = "float"
    STRING = "string"
    BINARY = "binary"
    DATE = "date"
    TIME = "time"
    DATETIME = "datetime"
    DATETIMEOFFSET = "datetimeoffset"
    UUID = "uuid"

    @property
    def is_value_type(self) -> bool:
        return self not in (LogicalType.STRING, LogicalType.BINARY)


@dataclass(frozen=True)
class ResolvedType:
    """Result of the type inference chain for one column."""

    logical: LogicalType
    optional: bool = False
    source: str = "declared"

    def __str__(self) -> str:
        return f"{self.logical.value}?" if self.optional else self.logical.value


@dataclass
class ColumnInfo:
    schema: str
    table: str
    name: str
    type: str
    nullable: bool
    comment: str = ""
    inferred_as_boolean: bool = False
    inferred_as_guid: bool = False
    resolved_type: Optional[ResolvedType] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "type": self.type,
            "nullable": self.nullable,
            "comment": self.comment,
            "inferred_as_boolean": self.inferred_as_boolean,
            "inferred_as_guid": self.inferred_as_guid,
            "resolved_type": str(self.resolved_type) if self.resolved_type else None,
            "resolved_by": self.resolved_type.source if self.resolved_type else None,
        }


@dataclass
class IndexInfo:
    schema: str
    table: str
    name: str
    columns: List[str]
    kind: str = ""

    @property
    def is_unique(self) -> bool:
        """Uniqueness is read from the kind label, e.g. 'unique', 'UNIQUE CLUSTERED'."""
        return "unique" in (self.kind or "").lower()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "columns": list(self.columns),
            "kind": self.kind,
            "is_unique": self.is_unique,
        }


@dataclass
class RelationshipInfo:
    """
    A foreign key. ``foreign_columns[i]`` on the referencing table points at
    ``key_columns[i]`` on the referenced table.
    """

    name: str
    schema_from: str
    table_from: str
    foreign_columns: List[str]
    schema_to: str
    table_to: str
    key_columns: List[str]

    @property
    def key(self) -> str:
        return ",".join(self.key_columns)

    @property
    def foreign(self) -> str:
        return ",".join(self.foreign_columns)

    @property
    def full_table_from(self) -> str:
        return f"{self.schema_from}.{self.table_from}" if self.schema_from else self.table_from

    @property
    def full_table_to(self) -> str:
        return f"{self.schema_to}.{self.table_to}" if self.schema_to else self.table_to

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "schema_from": self.schema_from,
            "table_from": self.table_from,
            "foreign_columns": list(self.foreign_columns),
            "schema_to": self.schema_to,
            "table_to": self.table_to,
            "key_columns": list(self.key_columns),
        }


@dataclass
class TableInfo:
    schema: str
    name: str
    columns: List[ColumnInfo] = field(default_factory=list)
    indexes: List[IndexInfo] = field(default_factory=list)
    outgoing_relationships: List[RelationshipInfo] = field(default_factory=list)
    incoming_relationships: List[RelationshipInfo] = field(default_factory=list)
    is_view: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.schema}.{self.name}" if self.schema else self.name

    def get_column(self, name: str) -> Optional[ColumnInfo]:
        for col in self.columns:
            if col.name.lower() == name.lower():
                return col
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema": self.schema,
            "name": self.name,
            "is_view": self.is_view,
            "columns": [c.to_dict() for c in self.columns],
            "indexes": [i.to_dict() for i in self.indexes],
            "outgoing_relationships": [r.name for r in self.outgoing_relationships],
            "incoming_relationships": [r.name for r in self.incoming_relationships],
        }


@dataclass
class FunctionParameter:
    name: str
    data_type: str
    ordinal_position: int


@dataclass
class ScalarFunctionInfo:
    schema: str
    name: str
    return_type: str
    parameters: List[FunctionParameter] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema": self.schema,
            "name": self.name,
            "return_type": self.return_type,
            "parameters": [
                {"name": p.name, "data_type": p.data_type, "ordinal_position": p.ordinal_position}
                for p in self.parameters
            ],
        }


class RoutineOutputType(str, Enum):
    NONE = "none"
    SCALAR = "scalar"
    TABULAR = "tabular"


@dataclass
class ProcedureParameter:
    name: str
    data_type: str
    ordinal_position: int
    is_output: bool = False
    has_default: bool = False


@dataclass
class ResultColumn:
    name: str
    data_type: str
    nullable: bool
    ordinal_position: int


@dataclass
class StoredProcedureInfo:
    schema: str
    name: str
    parameters: List[ProcedureParameter] = field(default_factory=list)
    output_type: RoutineOutputType = RoutineOutputType.NONE
    scalar_return_type: Optional[str] = None
    result_columns: List[ResultColumn] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema": self.schema,
            "name": self.name,
            "output_type": self.output_type.value,
            "scalar_return_type": self.scalar_return_type,
            "parameters": [
                {
                    "name": p.name,
                    "data_type": p.data_type,
                    "ordinal_position": p.ordinal_position,
                    "is_output": p.is_output,
                    "has_default": p.has_default,
                }
                for p in self.parameters
            ],
            "result_columns": [
                {
                    "name": c.name,
                    "data_type": c.data_type,
                    "nullable": c.nullable,
                    "ordinal_position": c.ordinal_position,
                }
                for c in self.result_columns
            ],
        }


@dataclass
class DatabaseSchema:
    """Complete schema of one namespace, built once per extraction."""

    tables: List[TableInfo] = field(default_factory=list)
    relationships: List[RelationshipInfo] = field(default_factory=list)
    scalar_functions: List[ScalarFunctionInfo] = field(default_factory=list)
    stored_procedures: List[StoredProcedureInfo] = field(default_factory=list)
    engine: str = ""
    namespace: str = ""

    @property
    def indexes(self) -> List[IndexInfo]:
        return [idx for t in self.tables for idx in t.indexes]

    def get_table(self, name: str, schema: Optional[str] = None) -> Optional[TableInfo]:
        """Find a table by name, optionally restricted to a schema. Case-insensitive."""
        for table in self.tables:
            if table.name.lower() != name.lower():
                continue
            if schema is None or (table.schema or "").lower() == schema.lower():
                return table
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "engine": self.engine,
            "namespace": self.namespace,
            "tables": [t.to_dict() for t in self.tables],
            "relationships": [r.to_dict() for r in self.relationships],
            "scalar_functions": [f.to_dict() for f in self.scalar_functions],
            "stored_procedures": [p.to_dict() for p in self.stored_procedures],
        }
