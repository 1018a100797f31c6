"""Exceptions raised at the boundaries of the KPI engine."""


class KPIEngineError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(KPIEngineError, ValueError):
    """Static scoring/tier tables are malformed or reference unknown metrics."""


class InvalidInputError(KPIEngineError, ValueError):
    """Input rows or records do not match the expected shape."""
