"""Runtime configuration from environment variables."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from playspace import constants


class Settings(BaseSettings):
    """Runtime configuration from environment variables.

    All settings can be overridden via environment variables with PLAYSPACE_ prefix.
    Example: PLAYSPACE_TEMP_ROOT=/var/tmp/tests
    """

    model_config = SettingsConfigDict(
        env_prefix=constants.ENV_PREFIX,
        extra="ignore",
    )

    # Scratch directory parent
    temp_root: Path | None = None  # None = tempfile.gettempdir()
