""".. Ignore pydocstyle D400.

====================
Morph Test Framework
====================

.. automodule:: morph.test.testcases
    :members:

"""
from morph.test.testcases import MorphTestCase

__all__ = ("MorphTestCase",)
