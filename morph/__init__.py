""".. Ignore pydocstyle D400.

=====
Morph
=====

Runtime shaping of serialized representations for Django REST framework.

"""
from morph.__about__ import (  # noqa: F401
    __author__,
    __copyright__,
    __email__,
    __license__,
    __summary__,
    __title__,
    __url__,
    __version__,
)
