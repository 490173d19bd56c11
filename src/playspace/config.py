"""Playspace configuration.

PlayspaceConfig holds the per-call options shared by Playspace and
AsyncPlayspace: where scratch directories are created and how they are
named.

Example:
    ```python
    from playspace import Playspace, PlayspaceConfig

    # Default configuration
    with Playspace.enter() as space:
        space.write_file("notes.txt", "hello")

    # Custom configuration
    config = PlayspaceConfig(temp_root=Path("/var/tmp"), prefix="mytests-")
    with Playspace.enter(config=config) as space:
        ...
    ```
"""

from __future__ import annotations

import tempfile
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, field_validator

from playspace.constants import DEFAULT_DIR_PREFIX, MAX_DIR_PREFIX_LENGTH


class PlayspaceConfig(BaseModel):
    """Configuration for a playspace.

    Attributes:
        temp_root: Parent directory of scratch directories.
            If None, resolved at entry time:
            - Env: PLAYSPACE_TEMP_ROOT
            - Otherwise tempfile.gettempdir()
        prefix: Scratch directory name prefix. A random suffix is appended.
            Must not contain path separators. Default: "playspace-".
        restore_working_directory: Return to the previous working directory
            on teardown. Disable only when the caller manages the working
            directory itself. Default: True.
    """

    model_config = ConfigDict(
        frozen=True,  # Immutable after creation
        extra="forbid",  # Reject unknown fields
    )

    temp_root: Path | None = Field(
        default=None,
        description="Parent of scratch directories (auto-detect if None)",
    )
    prefix: str = Field(
        default=DEFAULT_DIR_PREFIX,
        min_length=1,
        max_length=MAX_DIR_PREFIX_LENGTH,
        description="Scratch directory name prefix",
    )
    restore_working_directory: bool = Field(
        default=True,
        description="Return to the previous working directory on teardown",
    )

    @field_validator("prefix")
    @classmethod
    def _reject_separators(cls, value: str) -> str:
        if "/" in value or "\\" in value or value in {".", ".."}:
            raise ValueError(f"prefix must be a plain file name component, got {value!r}")
        return value

    def get_temp_root(self) -> Path:
        """Get the scratch directory parent, auto-detecting if not configured.

        Detection order:
        1. Explicit temp_root from config
        2. PLAYSPACE_TEMP_ROOT environment variable
        3. tempfile.gettempdir()

        Returns:
            Path to an existing directory

        Raises:
            FileNotFoundError: Resolved directory does not exist
        """
        from playspace.settings import Settings  # noqa: PLC0415

        if self.temp_root is not None:
            path = self.temp_root
        elif (env_path := Settings().temp_root) is not None:
            path = env_path
        else:
            path = Path(tempfile.gettempdir())

        if not path.is_dir():
            raise FileNotFoundError(f"Playspace temp root not found: {path}. Create it or set PLAYSPACE_TEMP_ROOT.")

        return path
