"""
Type inference chain.

Resolves one output type per column by asking, in order of confidence:
the data samplers (already run, recorded as column flags), the lexical name
rules, the statistical classifier, and finally the static declared-type map.
The first decisive stage wins.
"""

import logging
from typing import Optional

from ..config import CLASSIFIER_CONFIDENCE_THRESHOLD
from ..models import ColumnInfo, LogicalType, ResolvedType
from .classifier import TypeClassifier, default_classifier
from .lexical import infer_from_name
from .type_map import is_boolean_compatible, is_text_type, map_declared_type, with_nullability

logger = logging.getLogger(__name__)

_TEMPORAL = (LogicalType.DATE, LogicalType.TIME, LogicalType.DATETIME, LogicalType.DATETIMEOFFSET)


def is_compatible(predicted: LogicalType, declared: str, engine: str = "") -> bool:
    """
    Whether a predicted type is a plausible reading of the declared type.

    Text may be read as uuid, temporal or string. Small integers may be read
    as bool. Everything else must match the declared mapping exactly.
    """
    mapped = map_declared_type(declared, engine)
    if predicted == mapped:
        return True
    if predicted == LogicalType.BOOL:
        return is_boolean_compatible(declared)
    if predicted == LogicalType.UUID or predicted in _TEMPORAL:
        return is_text_type(declared)
    return False


class TypeInferenceChain:
    """Resolves a column's output type. Holds an optional classifier and its threshold."""

    def __init__(
        self,
        classifier: Optional[TypeClassifier] = None,
        threshold: float = CLASSIFIER_CONFIDENCE_THRESHOLD,
    ):
        self.classifier = classifier
        self.threshold = threshold

    @classmethod
    def default(cls) -> "TypeInferenceChain":
        return cls(classifier=default_classifier())

    def resolve_declared(self, column: ColumnInfo, engine: str = "") -> ResolvedType:
        """Static map only."""
        return with_nullability(map_declared_type(column.type, engine), column.nullable, "declared")

    def resolve(self, column: ColumnInfo, engine: str = "") -> ResolvedType:
        if column.inferred_as_boolean:
            return with_nullability(LogicalType.BOOL, column.nullable, "sampling")
        if column.inferred_as_guid:
            return with_nullability(LogicalType.UUID, column.nullable, "sampling")

        lexical = infer_from_name(column.name, column.type, column.comment)
        if lexical is not None:
            return with_nullability(lexical, column.nullable, "lexical")

        if self.classifier is not None:
            try:
                predicted, confidence = self.classifier.predict(column.name, column.type, column.comment)
            except Exception as e:
                logger.warning(f"Classifier failed for {column.table}.{column.name}: {e}")
            else:
                if confidence > self.threshold and is_compatible(predicted, column.type, engine):
                    return with_nullability(predicted, column.nullable, "classifier")

        return self.resolve_declared(column, engine)
