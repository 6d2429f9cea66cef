"""Exception hierarchy raised by schema extraction."""


class IntrospectionError(Exception):
    """Base class for all extraction failures."""


class ConfigurationError(IntrospectionError, ValueError):
    """Connection or option settings are incomplete or invalid. Raised before any I/O."""


class ConnectivityError(IntrospectionError, ConnectionError):
    """The database could not be reached, or a catalog query failed."""


class UnsupportedEngineError(IntrospectionError, NotImplementedError):
    """The requested engine has no metadata dialect."""

    def __init__(self, engine: str, detail: str = ""):
        self.engine = engine
        message = f"Schema extraction is not supported for engine '{engine}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class ExtractionCancelled(IntrospectionError):
    """Extraction was cancelled or exceeded its deadline."""
