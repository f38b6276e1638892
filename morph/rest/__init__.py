""".. Ignore pydocstyle D400.

==========
Morph REST
==========

Morphed Result
==============

.. autoclass:: morph.rest.result.MorphedResult
    :members:

Filter Provider
===============

.. automodule:: morph.rest.provider
    :members:

"""
