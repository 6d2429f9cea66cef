"""Static mapping from declared database types to logical types."""

import re
from typing import Dict, Optional

from ..config import canonical_engine_name
from ..models import LogicalType, ResolvedType

_PARENS = re.compile(r"\([^)]*\)")
_SPACES = re.compile(r"\s+")
_MODIFIERS = re.compile(r"\b(unsigned|signed|zerofill)\b")
_UUID_TEXT = re.compile(
    r"^\s*n?(var)?char\s*\(\s*36\s*\)\s*$|^\s*character(\s+varying)?\s*\(\s*36\s*\)\s*$",
    re.IGNORECASE,
)

_DECLARED: Dict[str, LogicalType] = {
    "int": LogicalType.INT,
    "integer": LogicalType.INT,
    "int4": LogicalType.INT,
    "mediumint": LogicalType.INT,
    "serial": LogicalType.INT,
    "serial4": LogicalType.INT,
    "bigint": LogicalType.LONG,
    "int8": LogicalType.LONG,
    "bigserial": LogicalType.LONG,
    "serial8": LogicalType.LONG,
    "smallint": LogicalType.SHORT,
    "int2": LogicalType.SHORT,
    "smallserial": LogicalType.SHORT,
    "serial2": LogicalType.SHORT,
    "tinyint": LogicalType.BYTE,
    "bit": LogicalType.BOOL,
    "boolean": LogicalType.BOOL,
    "bool": LogicalType.BOOL,
    "decimal": LogicalType.DECIMAL,
    "numeric": LogicalType.DECIMAL,
    "money": LogicalType.DECIMAL,
    "smallmoney": LogicalType.DECIMAL,
    "float": LogicalType.DOUBLE,
    "float8": LogicalType.DOUBLE,
    "double": LogicalType.DOUBLE,
    "double precision": LogicalType.DOUBLE,
    "real": LogicalType.FLOAT,
    "float4": LogicalType.FLOAT,
    "varchar": LogicalType.STRING,
    "nvarchar": LogicalType.STRING,
    "char": LogicalType.STRING,
    "nchar": LogicalType.STRING,
    "character": LogicalType.STRING,
    "character varying": LogicalType.STRING,
    "text": LogicalType.STRING,
    "ntext": LogicalType.STRING,
    "tinytext": LogicalType.STRING,
    "mediumtext": LogicalType.STRING,
    "longtext": LogicalType.STRING,
    "xml": LogicalType.STRING,
    "json": LogicalType.STRING,
    "jsonb": LogicalType.STRING,
    "date": LogicalType.DATE,
    "time": LogicalType.TIME,
    "timetz": LogicalType.TIME,
    "time with time zone": LogicalType.TIME,
    "time without time zone": LogicalType.TIME,
    "datetime": LogicalType.DATETIME,
    "datetime2": LogicalType.DATETIME,
    "smalldatetime": LogicalType.DATETIME,
    "timestamp": LogicalType.DATETIME,
    "timestamptz": LogicalType.DATETIME,
    "timestamp with time zone": LogicalType.DATETIME,
    "timestamp without time zone": LogicalType.DATETIME,
    "datetimeoffset": LogicalType.DATETIMEOFFSET,
    "uniqueidentifier": LogicalType.UUID,
    "uuid": LogicalType.UUID,
    "guid": LogicalType.UUID,
    "binary": LogicalType.BINARY,
    "varbinary": LogicalType.BINARY,
    "image": LogicalType.BINARY,
    "bytea": LogicalType.BINARY,
    "blob": LogicalType.BINARY,
    "tinyblob": LogicalType.BINARY,
    "mediumblob": LogicalType.BINARY,
    "longblob": LogicalType.BINARY,
    "rowversion": LogicalType.BINARY,
}

# SQL Server's timestamp is a row version, not a point in time.
_ENGINE_OVERRIDES: Dict[str, Dict[str, LogicalType]] = {
    "mssql": {"timestamp": LogicalType.BINARY},
}

_SMALL_INTEGER_TYPES = frozenset({"tinyint", "smallint", "bit", "int2", "mediumint", "byte"})
_TEXT_TYPES = frozenset(
    name for name, logical in _DECLARED.items()
    if logical is LogicalType.STRING and name not in ("xml", "json", "jsonb")
)
_BOOLEAN_COMPATIBLE = _SMALL_INTEGER_TYPES | {"bool", "boolean"}


def base_type(declared: Optional[str]) -> str:
    """Lowercased type name without length, precision or sign modifiers: 'varchar(36)' -> 'varchar'."""
    name = (declared or "").lower()
    name = _PARENS.sub("", name)
    name = _MODIFIERS.sub("", name)
    return _SPACES.sub(" ", name).strip()


def is_small_integer_type(declared: Optional[str]) -> bool:
    """Candidate types for the boolean sampler."""
    return base_type(declared) in _SMALL_INTEGER_TYPES


def is_boolean_compatible(declared: Optional[str]) -> bool:
    return base_type(declared) in _BOOLEAN_COMPATIBLE


def is_uuid_candidate_type(declared: Optional[str]) -> bool:
    """36-character string types: char(36), nvarchar(36), character varying(36)."""
    return bool(_UUID_TEXT.match(declared or ""))


def is_text_type(declared: Optional[str]) -> bool:
    return base_type(declared) in _TEXT_TYPES


def map_declared_type(declared: Optional[str], engine: str = "") -> LogicalType:
    """Map a declared type to a logical type. Unknown types map to string."""
    base = base_type(declared)
    overrides = _ENGINE_OVERRIDES.get(canonical_engine_name(engine), {})
    if base in overrides:
        return overrides[base]
    return _DECLARED.get(base, LogicalType.STRING)


def with_nullability(logical: LogicalType, nullable: bool, source: str) -> ResolvedType:
    """Value types become optional when the column is nullable. String and binary never do."""
    return ResolvedType(logical=logical, optional=bool(nullable) and logical.is_value_type, source=source)
