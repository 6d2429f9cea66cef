"""Procedure output-shape classification and the body heuristic."""

import pytest

from dbintrospect.models import ProcedureParameter, ResultColumn, RoutineOutputType, StoredProcedureInfo
from dbintrospect.routines import (
    Described,
    Unsupported,
    classify_by_parameters,
    classify_procedure,
    has_tabular_select,
    strip_comments_and_strings,
)


def _param(name, is_output=False, data_type="int"):
    return ProcedureParameter(name=name, data_type=data_type, ordinal_position=1, is_output=is_output)


class StubDialect:
    """Describes procedures from canned answers and counts calls."""

    def __init__(self, describable=True, described=None, definition=None):
        self.describable = describable
        self.described = described if described is not None else Unsupported("no")
        self.definition = definition
        self.describe_calls = 0
        self.definition_calls = 0

    def supports_result_description(self):
        return self.describable

    def describe_first_result_set(self, conn, schema, name):
        self.describe_calls += 1
        return self.described

    def fetch_routine_definition(self, conn, schema, name):
        self.definition_calls += 1
        return self.definition


class TestClassifyByParameters:

    @pytest.mark.parametrize("outputs,expected", [
        (0, RoutineOutputType.NONE),
        (1, RoutineOutputType.SCALAR),
        (2, RoutineOutputType.TABULAR),
        (3, RoutineOutputType.TABULAR),
    ])
    def test_counts_output_parameters(self, outputs, expected):
        params = [_param("in1")] + [_param(f"out{i}", is_output=True) for i in range(outputs)]
        assert classify_by_parameters(params) == expected


class TestHasTabularSelect:

    def test_plain_select(self):
        assert has_tabular_select("CREATE PROCEDURE p AS BEGIN SELECT id, name FROM users END")

    def test_insert_select_only(self):
        sql = "CREATE PROCEDURE p AS BEGIN INSERT INTO archive (id) SELECT id FROM users END"
        assert not has_tabular_select(sql)

    def test_insert_select_then_result(self):
        sql = """
            INSERT INTO archive SELECT * FROM users;
            SELECT COUNT(*) FROM archive;
        """
        assert has_tabular_select(sql)

    def test_insert_values_then_result(self):
        sql = "INSERT INTO t (a) VALUES (1) SELECT a FROM t"
        assert has_tabular_select(sql)

    def test_insert_select_with_union(self):
        sql = "INSERT INTO t SELECT a FROM x UNION ALL SELECT a FROM y"
        assert not has_tabular_select(sql)

    def test_select_into(self):
        assert not has_tabular_select("SELECT id INTO #tmp FROM users")

    def test_select_into_after_case(self):
        sql = "SELECT CASE WHEN a = 1 THEN 'x' ELSE 'y' END AS label INTO #tmp FROM t"
        assert not has_tabular_select(sql)

    def test_variable_assignment(self):
        sql = "DECLARE @n INT; SELECT @n = COUNT(*) FROM users; UPDATE stats SET total = @n"
        assert not has_tabular_select(sql)

    def test_top_variable_assignment(self):
        assert not has_tabular_select("SELECT TOP 1 @id = id FROM users ORDER BY id")

    def test_select_of_variable_is_a_result(self):
        assert has_tabular_select("DECLARE @n INT = 1; SELECT @n AS n")

    def test_subqueries_ignored(self):
        sql = """
            IF EXISTS (SELECT 1 FROM users WHERE id = @id)
                UPDATE users SET name = (SELECT TOP 1 name FROM staging) WHERE id = @id
        """
        assert not has_tabular_select(sql)

    def test_cursor_declaration(self):
        sql = "DECLARE c CURSOR FOR SELECT id FROM users; OPEN c; FETCH NEXT FROM c INTO @id"
        assert not has_tabular_select(sql)

    def test_select_in_comment(self):
        sql = """
            -- SELECT * FROM users
            /* SELECT id
               FROM users */
            UPDATE users SET name = 'x'
        """
        assert not has_tabular_select(sql)

    def test_select_in_string_literal(self):
        sql = "EXEC sp_log 'SELECT * FROM users'; UPDATE t SET a = 'it''s SELECT'"
        assert not has_tabular_select(sql)

    def test_cte_select(self):
        sql = "WITH recent AS (SELECT * FROM orders WHERE id > 10) SELECT * FROM recent"
        assert has_tabular_select(sql)

    def test_empty(self):
        assert not has_tabular_select("")
        assert not has_tabular_select(None)

    def test_strip_comments_and_strings(self):
        cleaned = strip_comments_and_strings("SELECT 'a--b' -- note\n/* c */ FROM t")
        assert "note" not in cleaned
        assert "c */" not in cleaned
        assert "a--b" not in cleaned
        assert "FROM t" in cleaned


class TestClassifyProcedure:

    def _proc(self, params):
        return StoredProcedureInfo(schema="dbo", name="p", parameters=params)

    def test_single_output_is_scalar_without_description(self):
        dialect = StubDialect(described=Described([ResultColumn("id", "int", False, 1)]))
        proc = classify_procedure(dialect, None, self._proc([_param("total", True, "decimal")]))
        assert proc.output_type == RoutineOutputType.SCALAR
        assert proc.scalar_return_type == "decimal"
        assert dialect.describe_calls == 0

    def test_baseline_when_description_unsupported(self):
        dialect = StubDialect(describable=False)
        proc = classify_procedure(dialect, None, self._proc([_param("a", True), _param("b", True)]))
        assert proc.output_type == RoutineOutputType.TABULAR
        assert proc.result_columns == []
        assert dialect.describe_calls == 0

    def test_described_result_set(self):
        columns = [ResultColumn("id", "int", False, 1), ResultColumn("name", "nvarchar(50)", True, 2)]
        dialect = StubDialect(described=Described(columns))
        proc = classify_procedure(dialect, None, self._proc([_param("id")]))
        assert proc.output_type == RoutineOutputType.TABULAR
        assert [c.name for c in proc.result_columns] == ["id", "name"]
        assert dialect.definition_calls == 0

    def test_heuristic_when_not_describable(self):
        dialect = StubDialect(described=Unsupported("temp table"), definition="SELECT * FROM #t")
        proc = classify_procedure(dialect, None, self._proc([]))
        assert proc.output_type == RoutineOutputType.TABULAR
        assert proc.result_columns == []

    def test_heuristic_negative_falls_back_to_baseline(self):
        dialect = StubDialect(
            described=Unsupported("dynamic sql"),
            definition="INSERT INTO log SELECT GETDATE()",
        )
        proc = classify_procedure(dialect, None, self._proc([_param("id")]))
        assert proc.output_type == RoutineOutputType.NONE

    def test_empty_description_falls_back_to_baseline(self):
        dialect = StubDialect(described=Described([]))
        proc = classify_procedure(dialect, None, self._proc([]))
        assert proc.output_type == RoutineOutputType.NONE
        assert dialect.definition_calls == 0
