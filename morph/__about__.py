"""Central place for package metadata."""

# NOTE: We use __title__ instead of simply __name__ since the latter would
#       interfere with a global variable __name__ denoting object's name.
__title__ = "drf-morph"
__summary__ = "Runtime field filtering and expansion for Django REST framework"
__url__ = "https://github.com/allenru/drf-morph"
__version__ = "1.0.0"

__author__ = "Morph contributors"
__email__ = "morph@allenru.com"

__license__ = "Apache License (2.0)"
__copyright__ = "2024, " + __author__
