"""
Environment lookups for the TFS_* settings.

Values are cast to the type of their default. A blank entry such as
`TFS_PAT=` in a .env file counts as unset.
"""

import logging
import os
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T', str, int, float, bool)

TRUE_WORDS = {"1", "true", "yes", "on"}
FALSE_WORDS = {"0", "false", "no", "off"}


def _parse_bool(raw: str) -> bool:
    word = raw.lower()
    if word in TRUE_WORDS:
        return True
    if word in FALSE_WORDS:
        return False
    raise ValueError(f"expected one of {sorted(TRUE_WORDS | FALSE_WORDS)}")


def get_env(key: str, default: T) -> T:
    """Read `key` from the environment, falling back to `default` when unset,
    blank, or not convertible to the default's type (the last case is logged)."""
    raw = os.getenv(key, "").strip()
    if not raw:
        return default

    parse = _parse_bool if isinstance(default, bool) else type(default)
    try:
        return parse(raw)
    except ValueError as e:
        logger.warning(f"Ignoring {key}={raw!r}, using default {default!r}: {e}")
        return default
