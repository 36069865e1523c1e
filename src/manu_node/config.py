"""Application runtime configuration.

`data_dir` is the directory holding the nodes file and the shell history. It is
normalized to an absolute path at init time, relative to the working
directory.
"""

import logging
from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Config(BaseSettings):
    """Settings loaded from constructor kwargs and `MANU_NODE_*` environment variables.

    Invariant:
        `nodes_file` and `history_file` are bare file names resolved inside
        `data_dir`.
    """

    model_config = SettingsConfigDict(env_prefix="MANU_NODE_")

    data_dir: Path = Path("./data")
    nodes_file: str = "nodes.json"
    history_file: str = ".history"
    log_level: str = "WARNING"
    log_console: bool = False

    @field_validator("data_dir")
    @classmethod
    def _normalize_data_dir(cls, value: Path) -> Path:
        return value.expanduser().resolve()

    @field_validator("nodes_file", "history_file")
    @classmethod
    def _validate_file_name(cls, value: str) -> str:
        if not value or Path(value).name != value:
            raise ValueError(f"expected a bare file name, got {value!r}")
        return value

    @field_validator("log_level")
    @classmethod
    def _validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"unknown log level: {value!r}")
        return level

    @property
    def nodes_path(self) -> Path:
        return self.data_dir / self.nodes_file

    @property
    def history_path(self) -> Path:
        return self.data_dir / self.history_file
