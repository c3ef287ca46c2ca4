"""
Global configuration and environment handling.

This module is responsible for:
- Defining global constants, file names and defaults
- Reading passphrase related values from the environment
- Setting up logging for a filter invocation

Nothing in this file should depend on:
- the repository layout
- the policy document structure
- recipient resolution
- CLI arguments

If something here changes, the *entire tool* behavior changes.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Final, Mapping, Optional

# ---------------------------------------------------------------------------
# Tool versioning
# ---------------------------------------------------------------------------

TOOL_VERSION: Final[str] = "0.2.0"

# ---------------------------------------------------------------------------
# File locations
# ---------------------------------------------------------------------------

POLICY_FILENAME: Final[str] = "git-agecrypt.toml"

# Relative to the git control directory (usually .git/)
STATE_DIRNAME: Final[str] = "git-agecrypt"
LOCAL_CONFIG_FILENAME: Final[str] = "config.yml"
CACHE_DIRNAME: Final[str] = "cache"

# ---------------------------------------------------------------------------
# Passphrase getters
# ---------------------------------------------------------------------------

IMPLICIT_GETTER: Final[str] = "sops"

# ---------------------------------------------------------------------------
# Environment variable names
# ---------------------------------------------------------------------------

ENV_PASSPHRASE: Final[str] = "AGE_PASSPHRASE"
ENV_PASSPHRASE_GETTER: Final[str] = "AGE_PASSPHRASE_GETTER"
ENV_LOG_LEVEL: Final[str] = "AGECRYPT_LOG"

DEFAULT_LOG_LEVEL: Final[str] = "WARNING"
LOG_FORMAT: Final[str] = "git-agecrypt: %(levelname)s %(name)s: %(message)s"

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_direct_passphrase(environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """
    Return the passphrase supplied directly through the environment.

    An unset or empty variable means no direct passphrase.
    """

    environ = os.environ if environ is None else environ
    return environ.get(ENV_PASSPHRASE) or None


def load_getter_override(environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """
    Return the passphrase getter override.

    The distinction between ``None`` and ``""`` matters:

    - ``None``: variable unset, the implicit getter may apply
    - ``""``: variable set but empty, explicitly suppresses the implicit getter
    - anything else: the name of the getter to run
    """

    environ = os.environ if environ is None else environ
    return environ.get(ENV_PASSPHRASE_GETTER)


def configure_logging(verbose: bool = False,
                      environ: Optional[Mapping[str, str]] = None) -> None:
    """
    Send log records to stderr.

    stdout belongs to git while a filter runs, so nothing may be logged there.
    """

    environ = os.environ if environ is None else environ
    if verbose:
        level = logging.DEBUG
    else:
        name = environ.get(ENV_LOG_LEVEL, DEFAULT_LOG_LEVEL).upper()
        level = logging.getLevelName(name)
        if not isinstance(level, int):
            level = logging.WARNING

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger("agecrypt")
    root.handlers[:] = [handler]
    root.setLevel(level)
    root.propagate = False
