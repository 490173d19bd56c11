"""Constants for playspace configuration and limits."""

from typing import Final

# ============================================================================
# Scratch Directory
# ============================================================================

DEFAULT_DIR_PREFIX: Final[str] = "playspace-"
"""Name prefix for scratch directories (tempfile.mkdtemp adds a random suffix)."""

MAX_DIR_PREFIX_LENGTH: Final[int] = 64
"""Longest accepted scratch directory prefix."""

# ============================================================================
# Environment Variables
# ============================================================================

ENV_PREFIX: Final[str] = "PLAYSPACE_"
"""Prefix for every environment variable read by the library itself."""

LOG_LEVEL_ENV_VAR: Final[str] = "PLAYSPACE_LOG_LEVEL"
"""Log level override for the playspace logger (e.g. DEBUG, WARNING)."""


# ============================================================================
# CLI Exit Codes
# ============================================================================

EXIT_CLI_ERROR: Final[int] = 2
"""Usage error (bad option value)."""

EXIT_CONTENTION: Final[int] = 75
"""Another playspace is active and --no-wait was given (EX_TEMPFAIL)."""

EXIT_PLAYSPACE_ERROR: Final[int] = 125
"""Setup, containment or teardown failure."""

EXIT_COMMAND_NOT_FOUND: Final[int] = 127
"""Command could not be executed (matches shell convention)."""

# ============================================================================
# Child Process Cleanup (CLI)
# ============================================================================

CHILD_TERM_TIMEOUT_SECONDS: Final[float] = 3.0
"""Seconds to wait after SIGTERM before escalating to SIGKILL."""

CHILD_KILL_TIMEOUT_SECONDS: Final[float] = 2.0
"""Seconds to wait after SIGKILL before giving up on the child."""
