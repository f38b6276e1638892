"""Morph exceptions."""


class MorphError(Exception):
    """Base class for all errors raised while morphing a result."""

    pass


class CorrelationError(MorphError):
    """Raised when the filter data of a primary result can not be found.

    The inner filter was resolved for a value that was never registered by
    the outer filter in the same filter session. This is an integration
    error, the serialization must not continue unfiltered.
    """

    pass


class UnsupportedFilterLookup(MorphError, NotImplementedError):
    """Raised for filter lookups that the provider does not implement."""

    pass
