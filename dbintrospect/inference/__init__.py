"""Column type inference: samplers, name rules, classifier and declared-type map."""

from .chain import TypeInferenceChain, is_compatible
from .classifier import TypeClassifier, default_classifier
from .samplers import sample_boolean, sample_table, sample_uuid
from .type_map import map_declared_type

__all__ = [
    "TypeInferenceChain",
    "TypeClassifier",
    "default_classifier",
    "is_compatible",
    "map_declared_type",
    "sample_boolean",
    "sample_table",
    "sample_uuid",
]
