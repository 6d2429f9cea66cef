"""
Stored procedure output-shape classification.

A procedure either returns nothing, a single scalar through one output
parameter, or a result set. Engines that can describe a procedure's first
result set are asked first. When description is unsupported the procedure
body is scanned for a SELECT that would stream rows to the caller.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Sequence, Union

from .models import ProcedureParameter, ResultColumn, RoutineOutputType, StoredProcedureInfo

logger = logging.getLogger(__name__)


@dataclass
class Described:
    """The engine described the first result set."""

    columns: List[ResultColumn] = field(default_factory=list)


@dataclass
class Unsupported:
    """The engine could not describe the result set (dynamic SQL, temp tables, ...)."""

    reason: str = ""


DescribeResult = Union[Described, Unsupported]


def classify_by_parameters(parameters: Sequence[ProcedureParameter]) -> RoutineOutputType:
    """Baseline policy: 0 output parameters -> NONE, 1 -> SCALAR, more -> TABULAR."""
    outputs = sum(1 for p in parameters if p.is_output)
    if outputs == 0:
        return RoutineOutputType.NONE
    if outputs == 1:
        return RoutineOutputType.SCALAR
    return RoutineOutputType.TABULAR


_SKIPPABLE = re.compile(r"'(?:''|[^'])*'|--[^\r\n]*|/\*[\s\S]*?\*/")
_TOKEN = re.compile(r'\[[^\]]*\]|"[^"]*"|@@?\w+|#{0,2}\w+|\S')

_STATEMENT_KEYWORDS = frozenset({
    "SELECT", "INSERT", "UPDATE", "DELETE", "MERGE", "SET", "DECLARE", "IF", "ELSE",
    "WHILE", "BEGIN", "END", "RETURN", "EXEC", "EXECUTE", "PRINT", "RAISERROR", "THROW",
    "TRUNCATE", "DROP", "CREATE", "ALTER", "GOTO", "COMMIT", "ROLLBACK", "OPEN", "FETCH",
    "CLOSE", "DEALLOCATE", "BREAK", "CONTINUE", "WAITFOR",
})
_SET_OPERATORS = frozenset({"UNION", "ALL", "EXCEPT", "INTERSECT", "FOR"})
_INSERT_SOURCES = frozenset({"SELECT", "VALUES", "EXEC", "EXECUTE", "DEFAULT"})
_COMPOUND_ASSIGN = frozenset({"+", "-", "*", "/", "%", "&", "|", "^"})


def strip_comments_and_strings(sql: str) -> str:
    """Drop comments and blank out string literals so keywords inside them are not seen."""
    return _SKIPPABLE.sub(lambda m: "''" if m.group(0).startswith("'") else " ", sql)


def _tokenize(sql: str) -> List[str]:
    return [t.upper() for t in _TOKEN.findall(sql)]


def _is_variable_assignment(tokens: List[str], start: int) -> bool:
    """True when the select list starting at ``start`` is ``@var = ...``."""
    i = start
    if i < len(tokens) and tokens[i] == "DISTINCT":
        i += 1
    if i < len(tokens) and tokens[i] == "TOP":
        i += 1
        if i < len(tokens) and tokens[i] == "(":
            while i < len(tokens) and tokens[i] != ")":
                i += 1
        i += 1
    if i >= len(tokens) or not tokens[i].startswith("@") or tokens[i].startswith("@@"):
        return False
    nxt = tokens[i + 1] if i + 1 < len(tokens) else ""
    if nxt == "=":
        return True
    return nxt in _COMPOUND_ASSIGN and i + 2 < len(tokens) and tokens[i + 2] == "="


def _has_into_clause(tokens: List[str], start: int) -> bool:
    """True when INTO appears at this statement's top level before it ends."""
    depth = 0
    case_depth = 0
    for tok in tokens[start:]:
        if tok == "(":
            depth += 1
        elif tok == ")":
            depth -= 1
            if depth < 0:
                return False
        elif depth > 0:
            continue
        elif tok == ";":
            return False
        elif tok == "CASE":
            case_depth += 1
        elif tok == "END" and case_depth > 0:
            case_depth -= 1
        elif case_depth > 0:
            continue
        elif tok == "INTO":
            return True
        elif tok in _STATEMENT_KEYWORDS or tok in _SET_OPERATORS:
            return False
    return False


def has_tabular_select(sql: str) -> bool:
    """
    Whether a procedure body contains a top-level SELECT that returns rows.

    Not counted: subqueries, ``INSERT INTO ... SELECT``, ``SELECT ... INTO``,
    ``SELECT @var = ...`` assignments, compound-query branches after
    UNION/EXCEPT/INTERSECT, and cursor declarations (``FOR SELECT``).
    """
    if not sql:
        return False
    tokens = _tokenize(strip_comments_and_strings(sql))
    depth = 0
    insert_pending = False
    prev = ""
    for i, tok in enumerate(tokens):
        if tok == "(":
            depth += 1
            continue
        if tok == ")":
            depth = max(depth - 1, 0)
            prev = tok
            continue
        if depth > 0:
            continue
        if tok == "INSERT":
            insert_pending = True
        elif tok == "SELECT":
            if insert_pending:
                insert_pending = False
            elif prev in _SET_OPERATORS:
                pass
            elif _is_variable_assignment(tokens, i + 1):
                pass
            elif _has_into_clause(tokens, i + 1):
                pass
            else:
                return True
        elif tok in _INSERT_SOURCES:
            insert_pending = False
        prev = tok
    return False


def classify_procedure(dialect, conn, procedure: StoredProcedureInfo) -> StoredProcedureInfo:
    """
    Set ``output_type`` (and result columns or scalar type) on ``procedure``.

    Exactly one output parameter always means SCALAR. Engines with result-set
    description then try, in order: the described first result set, the body
    heuristic when description is unsupported, and finally the baseline
    parameter count.
    """
    outputs = [p for p in procedure.parameters if p.is_output]
    baseline = classify_by_parameters(procedure.parameters)
    procedure.result_columns = []
    procedure.scalar_return_type = None

    if len(outputs) == 1:
        procedure.output_type = RoutineOutputType.SCALAR
        procedure.scalar_return_type = outputs[0].data_type
        return procedure

    if not dialect.supports_result_description():
        procedure.output_type = baseline
        return procedure

    described = dialect.describe_first_result_set(conn, procedure.schema, procedure.name)
    if isinstance(described, Described) and any(c.name for c in described.columns):
        procedure.output_type = RoutineOutputType.TABULAR
        procedure.result_columns = [c for c in described.columns if c.name]
        return procedure

    if isinstance(described, Unsupported):
        logger.debug(
            f"Result set of {procedure.schema}.{procedure.name} not describable: {described.reason}"
        )
        definition = dialect.fetch_routine_definition(conn, procedure.schema, procedure.name)
        if definition and has_tabular_select(definition):
            procedure.output_type = RoutineOutputType.TABULAR
            return procedure

    procedure.output_type = baseline
    return procedure
