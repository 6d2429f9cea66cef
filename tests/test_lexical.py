import pytest

from dbintrospect.inference.lexical import infer_from_name, looks_boolean, looks_uuid, temporal_kind
from dbintrospect.models import LogicalType


class TestBooleanNames:

    @pytest.mark.parametrize("name", ["is_active", "HAS_CHILDREN", "can_edit", "email_enabled", "active", "Deleted"])
    def test_matches(self, name):
        assert looks_boolean(name)

    @pytest.mark.parametrize("name", ["status", "island", "activity", ""])
    def test_no_match(self, name):
        assert not looks_boolean(name)

    def test_requires_boolean_compatible_type(self):
        assert infer_from_name("is_active", "tinyint") == LogicalType.BOOL
        assert infer_from_name("is_active", "bit") == LogicalType.BOOL
        assert infer_from_name("is_active", "int") is None
        assert infer_from_name("is_active", "varchar(5)") is None


class TestUuidNames:

    def test_by_name_or_comment(self):
        assert looks_uuid("correlation_id")
        assert looks_uuid("order_guid")
        assert looks_uuid("ref", "External UUID of the order")
        assert not looks_uuid("ref", "free text")

    def test_requires_36_character_text(self):
        assert infer_from_name("tracking_id", "char(36)") == LogicalType.UUID
        assert infer_from_name("tracking_id", "varchar(64)") is None
        assert infer_from_name("tracking_id", "int") is None


class TestTemporalNames:

    @pytest.mark.parametrize("name,expected", [
        ("birth_date", LogicalType.DATE),
        ("start_time", LogicalType.TIME),
        ("created_at", LogicalType.DATETIME),
        ("updated", LogicalType.DATETIME),
        ("updated_on", LogicalType.DATETIME),
        ("created_on", LogicalType.DATETIME),
        ("last_update_date", LogicalType.DATE),
        ("event_timestamp", LogicalType.DATETIME),
        ("date_time", LogicalType.DATETIME),
        ("description", None),
        ("status", None),
    ])
    def test_temporal_kind(self, name, expected):
        assert temporal_kind(name) == expected

    def test_only_for_text_types(self):
        assert infer_from_name("created_at", "varchar(30)") == LogicalType.DATETIME
        assert infer_from_name("created_at", "bigint") is None

    def test_json_comment_stays_string(self):
        assert infer_from_name("schedule_time", "nvarchar(max)", "JSON payload") == LogicalType.STRING
