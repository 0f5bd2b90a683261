"""Engine-wide constants.

This module defines constants used throughout the engine
to avoid magic numbers and ensure consistency.
"""

# Guards
DEFAULT_GUARD = "web"

# String field lengths
MAX_NAME_LENGTH = 255
MAX_GUARD_LENGTH = 100
MAX_LABEL_LENGTH = 255
MAX_DESCRIPTION_LENGTH = 1000
MAX_MORPH_TYPE_LENGTH = 255
MAX_MORPH_ID_LENGTH = 255

# Resolution cache
DEFAULT_CACHE_KEY = "warden.permissions.cache"
DEFAULT_CACHE_EXPIRATION_SECONDS = 60 * 60 * 24  # 24 hours
MAX_VIEW_ATTEMPTS = 5  # rebuilds of a view torn by a concurrent invalidation

# Wildcard matcher
WILDCARD = "*"
MAX_COMPILED_PATTERNS = 1000
