"""Free-text input cleaning for catalog and customer fields.

Everything the storefront front end submits as text is passed through
bleach.clean() with no allowed tags before it is stored.
"""

import bleach


def sanitize(text):
    """Strip all HTML tags from user input. None becomes ""."""
    if text is None:
        return ""
    return bleach.clean(str(text), tags=[], strip=True).strip()


def sanitize_optional(text):
    """Like sanitize(), but blank input is stored as NULL."""
    return sanitize(text) or None
