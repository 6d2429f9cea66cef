"""End-to-end extraction against SQLite files."""

import threading

import pytest

from dbintrospect import extractor
from dbintrospect.config import ConnectionDescriptor, ExtractionOptions
from dbintrospect.errors import (
    ConfigurationError,
    ConnectivityError,
    ExtractionCancelled,
    UnsupportedEngineError,
)
from dbintrospect.databases.sqlite import SqliteDialect
from dbintrospect.extractor import extract_schema
from dbintrospect.models import ProcedureParameter, RoutineOutputType, StoredProcedureInfo
from dbintrospect.routines import Unsupported


def _resolved(table, column):
    return str(table.get_column(column).resolved_type)


class TestShopExtraction:

    @pytest.fixture
    def schema(self, shop_descriptor, rules_chain):
        return extract_schema(shop_descriptor, ExtractionOptions(include_views=False), chain=rules_chain)

    def test_tables(self, schema):
        assert schema.engine == "sqlite"
        assert schema.namespace == "main"
        assert [t.name for t in schema.tables] == ["orders", "users"]
        assert not any(t.is_view for t in schema.tables)

    def test_declared_relationship(self, schema):
        assert len(schema.relationships) == 1
        rel = schema.relationships[0]
        assert (rel.table_from, rel.table_to) == ("orders", "users")
        assert rel.key == "id"
        assert rel.foreign == "user_id"

    def test_relationship_views(self, schema):
        users = schema.get_table("users")
        orders = schema.get_table("orders")
        assert [r.table_from for r in users.incoming_relationships] == ["orders"]
        assert users.outgoing_relationships == []
        assert [r.table_to for r in orders.outgoing_relationships] == ["users"]
        assert orders.incoming_relationships == []

    def test_sampled_boolean(self, schema):
        users = schema.get_table("users")
        assert users.get_column("is_active").inferred_as_boolean
        assert _resolved(users, "is_active") == "bool?"

    def test_sampled_uuid(self, schema):
        users = schema.get_table("users")
        assert users.get_column("external_ref").inferred_as_guid
        assert _resolved(users, "external_ref") == "uuid?"

    def test_many_values_not_boolean(self, schema):
        orders = schema.get_table("orders")
        assert not orders.get_column("status").inferred_as_boolean
        assert _resolved(orders, "status") == "byte?"

    def test_lexical_temporal(self, schema):
        users = schema.get_table("users")
        assert _resolved(users, "created_on") == "datetime?"
        assert users.get_column("created_on").resolved_type.source == "lexical"

    def test_declared_types(self, schema):
        users = schema.get_table("users")
        orders = schema.get_table("orders")
        assert _resolved(users, "id") == "int"
        assert _resolved(users, "name") == "string"
        assert _resolved(orders, "user_id") == "int"
        assert _resolved(orders, "total") == "decimal?"

    def test_indexes(self, schema):
        users = schema.get_table("users")
        orders = schema.get_table("orders")
        assert [(i.name, i.columns, i.is_unique) for i in users.indexes] == [("ux_users_name", ["name"], True)]
        assert [(i.name, i.columns, i.is_unique) for i in orders.indexes] == [("ix_orders_user", ["user_id"], False)]

    def test_flattened_indexes(self, schema):
        assert [i.name for i in schema.indexes] == ["ix_orders_user", "ux_users_name"]

    def test_no_routines_on_sqlite(self, schema):
        assert schema.scalar_functions == []
        assert schema.stored_procedures == []


class TestOptions:

    def test_views_included_by_default(self, shop_descriptor, rules_chain):
        schema = extract_schema(shop_descriptor, chain=rules_chain)
        view = schema.get_table("active_users")
        assert view is not None and view.is_view
        assert [t.name for t in schema.tables] == ["orders", "users", "active_users"]

    def test_default_chain(self, shop_descriptor):
        schema = extract_schema(shop_descriptor, ExtractionOptions(include_views=False))
        assert str(schema.get_table("users").get_column("is_active").resolved_type) == "bool?"

    def test_url_connection(self, shop_db, rules_chain):
        schema = extract_schema(f"sqlite:///{shop_db}", chain=rules_chain)
        assert schema.get_table("users") is not None

    def test_inference_disabled(self, shop_descriptor):
        options = ExtractionOptions(enable_type_inference=False)
        users = extract_schema(shop_descriptor, options).get_table("users")
        column = users.get_column("is_active")
        assert not column.inferred_as_boolean
        assert str(column.resolved_type) == "byte?"
        assert column.resolved_type.source == "declared"

    def test_sampling_disabled(self, shop_descriptor, rules_chain):
        options = ExtractionOptions(enable_data_sampling=False)
        users = extract_schema(shop_descriptor, options, chain=rules_chain).get_table("users")
        assert _resolved(users, "is_active") == "bool?"
        assert users.get_column("is_active").resolved_type.source == "lexical"
        assert not users.get_column("external_ref").inferred_as_guid
        assert _resolved(users, "external_ref") == "string"

    def test_relationships_disabled(self, shop_descriptor, rules_chain):
        options = ExtractionOptions(include_relationships=False)
        schema = extract_schema(shop_descriptor, options, chain=rules_chain)
        assert schema.relationships == []
        assert schema.get_table("users").incoming_relationships == []

    def test_idempotent(self, shop_descriptor, rules_chain):
        first = extract_schema(shop_descriptor, chain=rules_chain).to_dict()
        second = extract_schema(shop_descriptor, chain=rules_chain).to_dict()
        assert first == second

    def test_single_worker(self, shop_descriptor, rules_chain):
        schema = extract_schema(shop_descriptor, ExtractionOptions(max_workers=1), chain=rules_chain)
        assert len(schema.tables) == 3


KEYS_DDL = [
    """
    CREATE TABLE order_lines (
        order_id INTEGER NOT NULL,
        line_no INTEGER NOT NULL,
        PRIMARY KEY (order_id, line_no)
    )
    """,
    """
    CREATE TABLE shipments (
        id INTEGER PRIMARY KEY,
        line_no INTEGER,
        order_id INTEGER,
        FOREIGN KEY (order_id, line_no) REFERENCES order_lines (order_id, line_no)
    )
    """,
    """
    CREATE TABLE refunds (
        id INTEGER PRIMARY KEY,
        order_id INTEGER,
        line_no INTEGER,
        FOREIGN KEY (order_id, line_no) REFERENCES order_lines
    )
    """,
    "CREATE TABLE employees (id INTEGER PRIMARY KEY, manager_id INTEGER REFERENCES employees (id))",
]


class TestForeignKeys:

    @pytest.fixture
    def schema(self, make_database, rules_chain):
        return extract_schema(make_database("keys", KEYS_DDL), chain=rules_chain)

    def _rel(self, schema, table_from):
        return [r for r in schema.relationships if r.table_from == table_from]

    def test_composite_key_positions(self, schema):
        (rel,) = self._rel(schema, "shipments")
        assert rel.foreign_columns == ["order_id", "line_no"]
        assert rel.key_columns == ["order_id", "line_no"]

    def test_implicit_primary_key_target(self, schema):
        (rel,) = self._rel(schema, "refunds")
        assert rel.table_to == "order_lines"
        assert rel.key_columns == ["order_id", "line_no"]

    def test_self_reference(self, schema):
        (rel,) = self._rel(schema, "employees")
        employees = schema.get_table("employees")
        assert rel.table_to == "employees"
        assert employees.incoming_relationships == [rel]
        assert employees.outgoing_relationships == [rel]

    def test_incoming_on_parent(self, schema):
        parent = schema.get_table("order_lines")
        assert sorted(r.table_from for r in parent.incoming_relationships) == ["refunds", "shipments"]


class TestLegacyRelationships:

    DDL = [
        "CREATE TABLE customers (id INTEGER PRIMARY KEY, name TEXT)",
        "CREATE TABLE invoices (id INTEGER PRIMARY KEY, customer_id INTEGER, amount REAL)",
    ]

    def test_off_by_default(self, make_database, rules_chain):
        schema = extract_schema(make_database("legacy", self.DDL), chain=rules_chain)
        assert schema.relationships == []

    def test_inferred_from_names(self, make_database, rules_chain):
        options = ExtractionOptions(enable_legacy_relationship_inference=True)
        schema = extract_schema(make_database("legacy", self.DDL), options, chain=rules_chain)
        (rel,) = schema.relationships
        assert (rel.table_from, rel.foreign, rel.table_to, rel.key) == ("invoices", "customer_id", "customers", "id")
        assert schema.get_table("customers").incoming_relationships == [rel]

    def test_declared_keys_not_duplicated(self, shop_descriptor, rules_chain):
        options = ExtractionOptions(enable_legacy_relationship_inference=True)
        schema = extract_schema(shop_descriptor, options, chain=rules_chain)
        assert len(schema.relationships) == 1

    def test_requires_relationships(self, make_database, rules_chain):
        options = ExtractionOptions(enable_legacy_relationship_inference=True, include_relationships=False)
        schema = extract_schema(make_database("legacy", self.DDL), options, chain=rules_chain)
        assert schema.relationships == []


class TestFailures:

    @pytest.fixture
    def no_engine(self, monkeypatch):
        def _fail(*args, **kwargs):
            raise AssertionError("engine must not be created")

        monkeypatch.setattr(extractor, "get_engine", _fail)

    @pytest.mark.parametrize("descriptor,missing", [
        (ConnectionDescriptor(engine="postgresql", database="db", username="u"), "host"),
        (ConnectionDescriptor(engine="postgresql", host="h", username="u"), "database"),
        (ConnectionDescriptor(engine="mssql", host="h", database="db"), "username"),
        (ConnectionDescriptor(host="h", database="db", username="u"), "engine"),
        (ConnectionDescriptor(engine="sqlite"), "database"),
    ])
    def test_missing_parameter_before_io(self, no_engine, descriptor, missing):
        with pytest.raises(ConfigurationError, match=f"Missing connection parameter: {missing}"):
            extract_schema(descriptor)

    def test_invalid_options_before_io(self, no_engine, shop_descriptor):
        with pytest.raises(ConfigurationError):
            extract_schema(shop_descriptor, ExtractionOptions(max_workers=0))

    def test_oracle_unsupported(self, no_engine):
        descriptor = ConnectionDescriptor(engine="oracle", host="h", database="db", username="u")
        with pytest.raises(UnsupportedEngineError, match="oracle"):
            extract_schema(descriptor)

    def test_unknown_engine(self, no_engine):
        descriptor = ConnectionDescriptor(engine="db2", host="h", database="db", username="u")
        with pytest.raises(UnsupportedEngineError):
            extract_schema(descriptor)

    def test_unreachable_database(self, tmp_path, rules_chain):
        descriptor = ConnectionDescriptor(engine="sqlite", database=str(tmp_path / "missing" / "x.db"))
        with pytest.raises(ConnectivityError) as excinfo:
            extract_schema(descriptor, chain=rules_chain)
        assert excinfo.value.__cause__ is not None

    def test_cancelled(self, shop_descriptor, rules_chain):
        event = threading.Event()
        event.set()
        with pytest.raises(ExtractionCancelled):
            extract_schema(shop_descriptor, chain=rules_chain, cancel_event=event)

    def test_deadline(self, shop_descriptor, rules_chain):
        with pytest.raises(ExtractionCancelled, match="deadline"):
            extract_schema(shop_descriptor, ExtractionOptions(deadline_seconds=1e-9), chain=rules_chain)

    def test_unresolved_namespace(self, monkeypatch, shop_descriptor, rules_chain):
        monkeypatch.setattr(SqliteDialect, "resolve_default_schema", lambda self, conn: None)
        monkeypatch.setattr(SqliteDialect, "default_schema", lambda self: "")
        monkeypatch.delenv("SCHEMA", raising=False)
        with pytest.raises(ConfigurationError, match="namespace"):
            extract_schema(shop_descriptor, chain=rules_chain)


class TestRoutineFailures:

    @pytest.fixture
    def procedures(self, monkeypatch):
        found = [
            StoredProcedureInfo("main", "good", [ProcedureParameter("total", "int", 1, is_output=True)]),
            StoredProcedureInfo("main", "bad", []),
        ]
        monkeypatch.setattr(SqliteDialect, "fetch_procedures", lambda self, conn, schema: found)
        return found

    def test_failed_classification_skips_only_that_procedure(self, monkeypatch, procedures, shop_descriptor, rules_chain):
        classify = extractor.classify_procedure

        def _classify(dialect, conn, procedure):
            if procedure.name == "bad":
                raise RuntimeError("catalog hiccup")
            return classify(dialect, conn, procedure)

        monkeypatch.setattr(extractor, "classify_procedure", _classify)
        schema = extract_schema(shop_descriptor, ExtractionOptions(include_views=False), chain=rules_chain)

        assert [(p.name, p.output_type) for p in schema.stored_procedures] == [("good", RoutineOutputType.SCALAR)]
        assert [t.name for t in schema.tables] == ["orders", "users"]
        assert len(schema.relationships) == 1

    def test_failed_definition_fetch_skips_procedure(self, monkeypatch, procedures, shop_descriptor, rules_chain):
        def _definition(self, conn, schema, name):
            raise RuntimeError("definition unavailable")

        monkeypatch.setattr(SqliteDialect, "supports_result_description", lambda self: True)
        monkeypatch.setattr(
            SqliteDialect, "describe_first_result_set", lambda self, conn, schema, name: Unsupported("temp table")
        )
        monkeypatch.setattr(SqliteDialect, "fetch_routine_definition", _definition)
        schema = extract_schema(shop_descriptor, ExtractionOptions(include_views=False), chain=rules_chain)

        assert [p.name for p in schema.stored_procedures] == ["good"]
        assert [t.name for t in schema.tables] == ["orders", "users"]
