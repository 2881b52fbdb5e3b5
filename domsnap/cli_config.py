"""Locate and load the ``.env`` file holding the CLI's ``DOMSNAP_*`` defaults."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Optional

LOGGER = logging.getLogger(__name__)

EXAMPLE_ENV_FILE = Path(__file__).parent.parent / ".env.example"


def _seed_config(example: Path, config_dir: Path, config_env_file: Path, copy_file) -> bool:
    try:
        config_dir.mkdir(parents=True, exist_ok=True)
        copy_file(example, config_env_file)
    except OSError as exc:
        LOGGER.debug("Could not create %s: %s", config_env_file, exc)
        return False
    LOGGER.info("Created %s from .env.example; edit it to change the DOMSNAP_* defaults", config_env_file)
    return True


def load_config(
    *,
    config_dir: Path,
    config_env_file: Path,
    cwd: Path,
    load_env: Callable[[Path], bool],
    copy_file: Callable[[Path, Path], str],
) -> Optional[Path]:
    """Load the first env file found and return its path.

    ``cwd/.env`` wins over ``config_env_file``. When neither exists, the
    bundled ``.env.example`` seeds ``config_env_file``.
    """
    for candidate in (cwd / ".env", config_env_file):
        if candidate.is_file():
            load_env(candidate)
            return candidate

    if not EXAMPLE_ENV_FILE.is_file():
        return None
    if not _seed_config(EXAMPLE_ENV_FILE, config_dir, config_env_file, copy_file):
        return None

    load_env(config_env_file)
    return config_env_file
