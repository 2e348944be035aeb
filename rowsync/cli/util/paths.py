"""Manages rowsync directory structure following XDG Base Directory spec.

Directory layout:
    ~/.config/rowsync/
        config.yaml         # User configuration

    ~/.local/share/rowsync/
        rowsync.db          # SQLite database (queue + progress store)
        mappings.json       # Column mappings per source
        checkpoint.json     # Checkpoint snapshot

    ~/.local/state/rowsync/
        logs/
            worker.log      # Worker logs

ROWSYNC_DATA_DIR relocates the data directory (used by tests and containers).
"""

import os
from pathlib import Path


class RowSyncPaths:
    """Manages rowsync paths following XDG Base Directory specification.

    Supports overriding individual directories for testing.
    """

    def __init__(
        self,
        *,
        config_dir: Path | None = None,
        data_dir: Path | None = None,
        state_dir: Path | None = None,
    ) -> None:
        home = Path.home()
        env_data_dir = os.environ.get("ROWSYNC_DATA_DIR")
        self._config_dir = config_dir or home / ".config" / "rowsync"
        self._data_dir = data_dir or (
            Path(env_data_dir).expanduser() if env_data_dir else home / ".local" / "share" / "rowsync"
        )
        self._state_dir = state_dir or home / ".local" / "state" / "rowsync"

    # -------------------------------------------------------------------------
    # Base directories
    # -------------------------------------------------------------------------

    @property
    def config_dir(self) -> Path:
        """Config directory (~/.config/rowsync)."""
        return self._config_dir

    @property
    def data_dir(self) -> Path:
        """Data directory (~/.local/share/rowsync)."""
        return self._data_dir

    @property
    def state_dir(self) -> Path:
        """State directory (~/.local/state/rowsync)."""
        return self._state_dir

    # -------------------------------------------------------------------------
    # Files
    # -------------------------------------------------------------------------

    @property
    def config_file(self) -> Path:
        return self._config_dir / "config.yaml"

    @property
    def database_file(self) -> Path:
        return self._data_dir / "rowsync.db"

    @property
    def mappings_file(self) -> Path:
        return self._data_dir / "mappings.json"

    @property
    def checkpoint_file(self) -> Path:
        return self._data_dir / "checkpoint.json"

    @property
    def logs_dir(self) -> Path:
        return self._state_dir / "logs"

    @property
    def worker_log(self) -> Path:
        return self.logs_dir / "worker.log"

    def ensure_directories(self) -> None:
        """Create all directories if they don't exist."""
        for directory in (self._config_dir, self._data_dir, self.logs_dir):
            directory.mkdir(parents=True, exist_ok=True)
