"""Precedence of the inference stages."""

import pytest

from dbintrospect.inference.chain import TypeInferenceChain, is_compatible
from dbintrospect.models import ColumnInfo, LogicalType


class StubClassifier:
    def __init__(self, label, confidence=0.99, error=None):
        self.label = label
        self.confidence = confidence
        self.error = error
        self.calls = 0

    def predict(self, name, declared, comment=""):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.label, self.confidence


def _column(name, declared, nullable=True, **flags):
    return ColumnInfo("dbo", "t", name, declared, nullable, **flags)


class TestPrecedence:

    def test_sampled_boolean_wins(self):
        classifier = StubClassifier(LogicalType.INT)
        chain = TypeInferenceChain(classifier)
        resolved = chain.resolve(_column("status", "tinyint", inferred_as_boolean=True))
        assert str(resolved) == "bool?"
        assert resolved.source == "sampling"
        assert classifier.calls == 0

    def test_sampled_uuid(self):
        resolved = TypeInferenceChain().resolve(_column("ref", "char(36)", False, inferred_as_guid=True))
        assert str(resolved) == "uuid"

    def test_lexical_before_classifier(self):
        classifier = StubClassifier(LogicalType.STRING)
        resolved = TypeInferenceChain(classifier).resolve(_column("is_deleted", "bit"))
        assert resolved.logical == LogicalType.BOOL
        assert resolved.source == "lexical"
        assert classifier.calls == 0

    def test_confident_compatible_prediction(self):
        classifier = StubClassifier(LogicalType.DATETIME, 0.9)
        resolved = TypeInferenceChain(classifier).resolve(_column("happened", "varchar(40)"))
        assert str(resolved) == "datetime?"
        assert resolved.source == "classifier"

    def test_threshold_is_exclusive(self):
        classifier = StubClassifier(LogicalType.DATETIME, 0.7)
        resolved = TypeInferenceChain(classifier, threshold=0.7).resolve(_column("happened", "varchar(40)"))
        assert str(resolved) == "string"
        assert resolved.source == "declared"

    def test_incompatible_prediction_ignored(self):
        classifier = StubClassifier(LogicalType.UUID, 0.99)
        resolved = TypeInferenceChain(classifier).resolve(_column("amount", "decimal(10,2)", False))
        assert str(resolved) == "decimal"

    def test_classifier_failure_falls_back(self):
        classifier = StubClassifier(LogicalType.INT, error=RuntimeError("boom"))
        resolved = TypeInferenceChain(classifier).resolve(_column("qty", "int"))
        assert str(resolved) == "int?"

    def test_declared_only(self):
        chain = TypeInferenceChain(StubClassifier(LogicalType.BOOL))
        column = _column("is_active", "tinyint", inferred_as_boolean=True)
        assert str(chain.resolve_declared(column)) == "byte?"

    def test_engine_specific_declared_type(self):
        resolved = TypeInferenceChain().resolve(_column("row_ver", "timestamp", False), "mssql")
        assert resolved.logical == LogicalType.BINARY


@pytest.mark.parametrize("predicted,declared,expected", [
    (LogicalType.INT, "int", True),
    (LogicalType.BOOL, "tinyint", True),
    (LogicalType.BOOL, "int", False),
    (LogicalType.UUID, "char(36)", True),
    (LogicalType.DATE, "varchar(10)", True),
    (LogicalType.DATE, "int", False),
    (LogicalType.LONG, "int", False),
])
def test_is_compatible(predicted, declared, expected):
    assert is_compatible(predicted, declared) is expected
