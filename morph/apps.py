""".. Ignore pydocstyle D400.

===================
Morph Configuration
===================

"""
from django.apps import AppConfig
from django.utils.translation import gettext_lazy as _


class MorphConfig(AppConfig):
    """Morph AppConfig."""

    name = "morph"
    verbose_name = _("Morph")

    def ready(self):
        """Application initialization."""
        # Load the filter provider so a misconfigured setting fails early.
        from .rest.provider import get_filter_provider

        get_filter_provider()
