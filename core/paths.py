import os
from pathlib import Path


def data_dir() -> Path:
    """Root for the database, logs and stored profiles (cwd-relative by default)."""
    return Path(os.environ.get("BOXPILOT_DATA_DIR", "Data"))


def default_config_dir() -> Path:
    return data_dir() / "Configs"


def logs_dir() -> Path:
    return data_dir() / "Logs"
