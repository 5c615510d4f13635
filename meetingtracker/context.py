"""Runtime paths shared by the services and routers.

``create_app`` builds one ``AppContext`` and hands it to whoever needs a
path. Nothing reads the environment or the working directory after boot.
"""

from __future__ import annotations

import os
from typing import Mapping, Optional

DATA_DIR_ENV = "MEETINGTRACKER_DATA_DIR"


class AppContext:
    """Paths for config, uploaded audio and logs."""

    def __init__(self, *, cwd: str, data_dir: str, config_path: Optional[str] = None) -> None:
        self._cwd = cwd
        self._data_dir = data_dir
        self._config_path = config_path or os.path.join(data_dir, "config.json")

    @classmethod
    def resolve(cls, cwd: str, environ: Optional[Mapping[str, str]] = None) -> "AppContext":
        """Data dir from ``MEETINGTRACKER_DATA_DIR``, else ``<cwd>/data``."""
        environ = os.environ if environ is None else environ
        data_dir = environ.get(DATA_DIR_ENV) or os.path.join(cwd, "data")
        return cls(cwd=cwd, data_dir=os.path.abspath(data_dir))

    @property
    def data_dir(self) -> str:
        return self._data_dir

    @property
    def config_path(self) -> str:
        return self._config_path

    @property
    def uploads_dir(self) -> str:
        return os.path.join(self._data_dir, "uploads")

    # Logs stay next to the process, not in the data dir.
    @property
    def logs_dir(self) -> str:
        return os.path.join(self._cwd, "logs")

    def ensure_dirs(self) -> None:
        for path in (self.data_dir, self.uploads_dir, self.logs_dir):
            os.makedirs(path, exist_ok=True)
