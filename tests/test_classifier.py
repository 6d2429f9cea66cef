import pytest

from dbintrospect.inference.classifier import TRAINING_CORPUS, TypeClassifier, default_classifier
from dbintrospect.models import LogicalType


@pytest.fixture(scope="module")
def classifier():
    return default_classifier()


def test_labels_are_logical_types(classifier):
    assert classifier.labels
    assert all(isinstance(label, LogicalType) for label in classifier.labels)


def test_confidence_is_a_probability(classifier):
    label, confidence = classifier.predict("is_enabled", "tinyint", "")
    assert isinstance(label, LogicalType)
    assert 0.0 <= confidence <= 1.0


def test_fits_its_training_corpus(classifier):
    hits = sum(
        1 for name, declared, comment, label in TRAINING_CORPUS
        if classifier.predict(name, declared, comment)[0] == label
    )
    assert hits / len(TRAINING_CORPUS) >= 0.7


def test_default_is_shared():
    assert default_classifier() is default_classifier()


def test_empty_corpus_rejected():
    with pytest.raises(ValueError):
        TypeClassifier(corpus=())
