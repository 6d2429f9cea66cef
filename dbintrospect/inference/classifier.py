"""
Statistical column type classifier.

Character n-gram TF-IDF over the column name, declared type and comment,
fed into a multinomial logistic regression (scikit-learn). The training
corpus is small and hand-curated, so predictions are only trusted above a
confidence threshold and after the sampler and lexical stages.
"""

import logging
from functools import lru_cache
from typing import List, Sequence, Tuple

import numpy as np
from sklearn.compose import ColumnTransformer
from sklearn.feature_extraction.text import TfidfVectorizer
from sklearn.linear_model import LogisticRegression
from sklearn.pipeline import Pipeline

from ..models import LogicalType

logger = logging.getLogger(__name__)

# (column name, declared type, comment, label)
TRAINING_CORPUS: Tuple[Tuple[str, str, str, LogicalType], ...] = (
    # boolean flags stored as small integers
    ("is_active", "tinyint", "", LogicalType.BOOL),
    ("is_deleted", "bit", "", LogicalType.BOOL),
    ("is_enabled", "smallint", "", LogicalType.BOOL),
    ("has_access", "int", "", LogicalType.BOOL),
    ("active", "tinyint", "active flag", LogicalType.BOOL),
    ("enabled", "smallint", "", LogicalType.BOOL),
    ("deleted", "bit", "", LogicalType.BOOL),
    ("verified", "tinyint", "", LogicalType.BOOL),
    ("confirmed", "smallint", "", LogicalType.BOOL),
    ("flag", "tinyint", "", LogicalType.BOOL),
    ("status_flag", "int", "boolean flag", LogicalType.BOOL),
    ("can_edit", "tinyint", "", LogicalType.BOOL),
    ("allow_access", "smallint", "", LogicalType.BOOL),
    # uuids stored as text
    ("uuid", "varchar", "", LogicalType.UUID),
    ("guid", "char(36)", "", LogicalType.UUID),
    ("external_id", "varchar(36)", "uuid", LogicalType.UUID),
    ("correlation_id", "char(36)", "", LogicalType.UUID),
    ("tracking_id", "varchar(36)", "guid format", LogicalType.UUID),
    # dates and times stored as text
    ("created_at", "varchar", "", LogicalType.DATETIME),
    ("updated_at", "text", "timestamp", LogicalType.DATETIME),
    ("birth_date", "varchar(10)", "", LogicalType.DATE),
    ("hire_date", "varchar(10)", "date only", LogicalType.DATE),
    ("start_time", "varchar", "", LogicalType.TIME),
    ("end_time", "text", "time of day", LogicalType.TIME),
    # plain strings
    ("email", "varchar", "", LogicalType.STRING),
    ("email_address", "text", "", LogicalType.STRING),
    ("metadata", "text", "json data", LogicalType.STRING),
    ("settings", "varchar", "json", LogicalType.STRING),
    ("config", "text", "json configuration", LogicalType.STRING),
    ("properties", "longtext", "", LogicalType.STRING),
    # numerics keep their width
    ("count", "int", "", LogicalType.INT),
    ("quantity", "smallint", "", LogicalType.SHORT),
    ("amount", "decimal", "", LogicalType.DECIMAL),
    ("price", "decimal", "", LogicalType.DECIMAL),
    ("total", "decimal", "", LogicalType.DECIMAL),
    ("age", "tinyint", "", LogicalType.BYTE),
    ("level", "smallint", "", LogicalType.SHORT),
    ("priority", "tinyint", "priority level", LogicalType.BYTE),
    ("order", "int", "sort order", LogicalType.INT),
    ("sort_order", "smallint", "", LogicalType.SHORT),
    ("sequence", "int", "", LogicalType.INT),
    ("year", "smallint", "", LogicalType.SHORT),
    ("month", "tinyint", "", LogicalType.BYTE),
    ("day", "tinyint", "", LogicalType.BYTE),
    # keys
    ("id", "int", "", LogicalType.INT),
    ("user_id", "bigint", "", LogicalType.LONG),
    ("order_id", "int", "", LogicalType.INT),
    # binary payloads
    ("data", "blob", "", LogicalType.BINARY),
    ("image", "longblob", "", LogicalType.BINARY),
    ("file_content", "varbinary", "", LogicalType.BINARY),
    ("avatar", "blob", "image data", LogicalType.BINARY),
    # enum-like codes
    ("status", "tinyint", "", LogicalType.BYTE),
    ("type", "smallint", "", LogicalType.SHORT),
    ("category", "int", "", LogicalType.INT),
)


def _features(rows: Sequence[Tuple[str, str, str]]) -> np.ndarray:
    return np.array(
        [[(n or "").lower(), (t or "").lower(), (c or "").lower()] for n, t, c in rows],
        dtype=object,
    )


def _text_vectorizer() -> TfidfVectorizer:
    return TfidfVectorizer(analyzer="char_wb", ngram_range=(2, 4), lowercase=True)


class TypeClassifier:
    """Trained once from a corpus; read-only afterwards and safe to share between threads."""

    def __init__(self, corpus: Sequence[Tuple[str, str, str, LogicalType]] = TRAINING_CORPUS):
        if not corpus:
            raise ValueError("Classifier corpus is empty")
        features = ColumnTransformer([
            ("name", _text_vectorizer(), 0),
            ("type", _text_vectorizer(), 1),
            ("comment", _text_vectorizer(), 2),
        ])
        self._pipeline = Pipeline([
            ("features", features),
            ("model", LogisticRegression(max_iter=2000, C=10.0, random_state=42)),
        ])
        X = _features([(n, t, c) for n, t, c, _ in corpus])
        y = np.array([label.value for *_, label in corpus])
        self._pipeline.fit(X, y)
        self._labels: List[str] = list(self._pipeline.named_steps["model"].classes_)
        logger.debug(f"Type classifier trained on {len(corpus)} examples, {len(self._labels)} labels")

    @property
    def labels(self) -> List[LogicalType]:
        return [LogicalType(label) for label in self._labels]

    def predict(self, name: str, declared: str, comment: str = "") -> Tuple[LogicalType, float]:
        """Top label and its probability."""
        proba = self._pipeline.predict_proba(_features([(name, declared, comment)]))[0]
        best = int(np.argmax(proba))
        return LogicalType(self._labels[best]), float(proba[best])


@lru_cache(maxsize=1)
def default_classifier() -> TypeClassifier:
    """Classifier trained on the built-in corpus, built on first use."""
    return TypeClassifier()
