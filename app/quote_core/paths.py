"""
Application paths management for development and packaged deployment.
Uses platformdirs to ensure data persists in user-writable locations.
"""

import os
import sys
from pathlib import Path
from typing import Optional

from platformdirs import user_data_dir


class AppPaths:
    """Centralized path management for the application."""

    APP_NAME = "QuoteVault"
    APP_AUTHOR = "NogaMT"

    def __init__(self, data_root: Optional[Path] = None):
        # Determine if we're running in development or packaged mode
        self.is_packaged = getattr(sys, 'frozen', False)

        if self.is_packaged:
            self.app_root = Path(sys.executable).parent
        else:
            self.app_root = Path(__file__).parent.parent.parent

        # Explicit root wins over the environment, which wins over platformdirs
        env_root = os.environ.get("QUOTE_VAULT_DATA_DIR")
        if data_root is not None:
            self._data_root = Path(data_root)
        elif env_root:
            self._data_root = Path(env_root).expanduser()
        else:
            self._data_root = None

    @property
    def data_dir(self) -> Path:
        """User data directory for database and application data."""
        if self._data_root is not None:
            data_path = self._data_root
        else:
            data_path = Path(user_data_dir(self.APP_NAME, self.APP_AUTHOR))
        data_path.mkdir(parents=True, exist_ok=True)
        return data_path

    @property
    def database_path(self) -> Path:
        """SQLite database file path."""
        db_dir = self.data_dir / "data"
        db_dir.mkdir(exist_ok=True)
        return db_dir / "quotations.db"

    @property
    def logs_dir(self) -> Path:
        logs_path = self.data_dir / "logs"
        logs_path.mkdir(exist_ok=True)
        return logs_path

    @property
    def exports_dir(self) -> Path:
        """Directory where generated quotation PDFs are saved."""
        exports_path = self.data_dir / "exports"
        exports_path.mkdir(parents=True, exist_ok=True)
        return exports_path

    @property
    def assets_dir(self) -> Path:
        """Assets directory for static files (logos)."""
        return self.app_root / "assets"

    def asset_path(self, name: str) -> Path:
        return self.assets_dir / name


# Global instance
app_paths = AppPaths()
