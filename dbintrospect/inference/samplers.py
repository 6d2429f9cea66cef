"""
Column signal samplers.

Small read-only queries that look at actual values to tell whether an integer
column only ever holds 0/1, or a 36-character text column only holds UUIDs.
Any failure while sampling counts as a negative verdict.
"""

import logging
import uuid
from decimal import Decimal
from typing import Any

from sqlalchemy import text
from sqlalchemy.engine import Connection

from ..config import BOOLEAN_MAX_DISTINCT, BOOLEAN_SAMPLE_LIMIT, MIN_VALID_UUIDS, UUID_SAMPLE_LIMIT
from ..models import ColumnInfo, TableInfo
from .type_map import is_small_integer_type, is_uuid_candidate_type

logger = logging.getLogger(__name__)


def _is_boolean_value(value: Any) -> bool:
    if value is None or isinstance(value, bool):
        return True
    if isinstance(value, (int, Decimal)):
        return value in (0, 1)
    if isinstance(value, (bytes, bytearray)):
        # MySQL BIT(1) comes back as a single byte
        return len(value) == 1 and value[0] in (0, 1)
    return False


def sample_boolean(dialect, conn: Connection, column: ColumnInfo) -> bool:
    """True when the column has at most 3 distinct values, all null, 0, 1 or boolean."""
    if not is_small_integer_type(column.type):
        return False
    query, params = dialect.build_distinct_sample_query(
        column.schema, column.table, column.name, BOOLEAN_SAMPLE_LIMIT
    )
    try:
        values = [row[0] for row in conn.execute(text(query), params).fetchall()]
    except Exception as e:
        logger.debug(f"Boolean sampling failed for {column.table}.{column.name}: {e}")
        return False
    if len(values) > BOOLEAN_MAX_DISTINCT:
        return False
    return all(_is_boolean_value(v) for v in values)


def _parse_uuid(value: Any) -> bool:
    if isinstance(value, uuid.UUID):
        return True
    try:
        uuid.UUID(str(value).strip())
        return True
    except (ValueError, TypeError, AttributeError):
        return False


def sample_uuid(dialect, conn: Connection, column: ColumnInfo) -> bool:
    """
    True when every sampled non-null value parses as a UUID and at least
    min(10, sampled) values were seen. One blank value disqualifies the column.
    """
    if not is_uuid_candidate_type(column.type):
        return False
    query, params = dialect.build_non_null_sample_query(
        column.schema, column.table, column.name, UUID_SAMPLE_LIMIT
    )
    try:
        values = [row[0] for row in conn.execute(text(query), params).fetchall()]
    except Exception as e:
        logger.debug(f"UUID sampling failed for {column.table}.{column.name}: {e}")
        return False
    total = 0
    valid = 0
    for value in values:
        total += 1
        if value is None or not str(value).strip():
            return False
        if _parse_uuid(value):
            valid += 1
    return valid > 0 and valid == total and valid >= min(MIN_VALID_UUIDS, total)


def sample_table(dialect, conn: Connection, table: TableInfo) -> None:
    """Run both samplers on the table's candidate columns and set the inferred flags."""
    for column in table.columns:
        if is_small_integer_type(column.type) and sample_boolean(dialect, conn, column):
            column.inferred_as_boolean = True
            logger.debug(f"{table.name}.{column.name}: sampled as boolean")
        elif is_uuid_candidate_type(column.type) and sample_uuid(dialect, conn, column):
            column.inferred_as_guid = True
            logger.debug(f"{table.name}.{column.name}: sampled as uuid")
