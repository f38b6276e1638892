""".. Ignore pydocstyle D400.

===============
Morph Utilities
===============

"""


class BraceMessage:
    """Log message formatted with :meth:`str.format` when it is emitted.

    Messages that no handler outputs, e.g. the debug messages of the filter
    provider, are never formatted. Import it as ``__`` and pass it to the
    logger: ``logger.debug(__("Registered {!r}.", result))``.
    """

    def __init__(self, fmt, *args, **kwargs):
        """Initialize attributes."""
        self.fmt = fmt
        self.args = args
        self.kwargs = kwargs

    def __str__(self):
        """Define the object representation."""
        return self.fmt.format(*self.args, **self.kwargs)
