""".. Ignore pydocstyle D400.

======================
Morph Exceptions Utils
======================

Utils functions for working with exceptions.

"""
import logging

from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from morph.exceptions import MorphError
from morph.utils import BraceMessage as __

logger = logging.getLogger(__name__)


def morph_exception_handler(exc, context):
    """Turn errors raised while morphing a result into error responses.

    To enable this, you have to add it to the settings:

        .. code:: python

            REST_FRAMEWORK = {
                'EXCEPTION_HANDLER': 'morph.utils.exceptions.morph_exception_handler',
            }

    """
    response = exception_handler(exc, context)

    if isinstance(exc, MorphError):
        logger.error(
            __("Unable to morph response of view {}: {}", context.get("view"), exc)
        )
        if response is None:
            response = Response({})
        response.status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        response.data["error"] = str(exc)

    return response
