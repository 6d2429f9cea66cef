"""Relational schema introspection with layered column type inference."""

from .config import ConnectionDescriptor, ExtractionOptions
from .errors import (
    ConfigurationError,
    ConnectivityError,
    ExtractionCancelled,
    IntrospectionError,
    UnsupportedEngineError,
)
from .extractor import extract_schema
from .models import DatabaseSchema

__all__ = [
    "ConnectionDescriptor",
    "ExtractionOptions",
    "DatabaseSchema",
    "extract_schema",
    "IntrospectionError",
    "ConfigurationError",
    "ConnectivityError",
    "UnsupportedEngineError",
    "ExtractionCancelled",
]

__version__ = "0.1.0"
