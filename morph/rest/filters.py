"""Property filters deciding which attributes of a value are serialized."""


class PropertyFilter:
    """Decide whether a named attribute is included in the output."""

    def include(self, name):
        """Return ``True`` if the named attribute should be serialized."""
        raise NotImplementedError(
            "Subclasses of PropertyFilter must implement a include() method."
        )

    def __call__(self, name):
        """Shortcut for :meth:`include`."""
        return self.include(name)


class MorphedResultFilter(PropertyFilter):
    """Property filter backed by the rules of a morphed result.

    Replaced attributes are never included, as their value is rendered
    from the expansion data instead.
    """

    def __init__(self, morphed_result):
        """Initialize attributes."""
        self.morphed_result = morphed_result

    def include(self, name):
        """Include permitted attributes that have not been replaced."""
        return self.morphed_result.is_permitted(
            name
        ) and not self.morphed_result.is_replaced(name)

    def __repr__(self):
        """Return the object representation."""
        return "<MorphedResultFilter: {!r}>".format(self.morphed_result)
