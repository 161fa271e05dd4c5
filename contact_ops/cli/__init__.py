"""CLI package for contact_ops."""

from contact_ops.cli.main import (
    DEFAULT_TASK_TIMEOUT,
    build_store,
    cli,
    get_config_dir,
    get_config_file,
    run_task,
)
from contact_ops.utils import DEFAULT_CONFIG_DIR

__all__ = [
    "DEFAULT_CONFIG_DIR",
    "DEFAULT_TASK_TIMEOUT",
    "build_store",
    "cli",
    "get_config_dir",
    "get_config_file",
    "run_task",
]
