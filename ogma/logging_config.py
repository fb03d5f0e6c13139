from __future__ import annotations
import logging
from pathlib import Path
import yaml
from typing import Optional

LOG_FORMAT = '%(asctime)s %(levelname)s [%(name)s]: %(message)s'
DEFAULT_LOG_LEVEL = logging.WARNING


def _level_from_config(config_path: Path) -> int:
    """Read `log_level` from a YAML file, falling back to WARNING."""
    if not config_path.exists():
        return DEFAULT_LOG_LEVEL
    try:
        with config_path.open('r', encoding='utf-8') as _f:
            _cfg = yaml.safe_load(_f) or {}
    except (OSError, yaml.YAMLError) as e:
        logging.getLogger(__name__).warning('Could not read %s: %s', config_path, e)
        return DEFAULT_LOG_LEVEL
    _lvl = _cfg.get('log_level') if isinstance(_cfg, dict) else None
    if not _lvl:
        return DEFAULT_LOG_LEVEL
    level = logging.getLevelName(str(_lvl).upper())
    return level if isinstance(level, int) else DEFAULT_LOG_LEVEL


def configure_logging(config_path: Optional[Path] = None) -> logging.Logger:
    """Configure root logging for applications embedding the store.

    The level comes from `log_level` in the YAML file at `config_path`
    (default `ogma.yml` in the working directory). Existing root handlers
    are replaced. Returns the `ogma` package logger.
    """
    level = _level_from_config(Path(config_path or 'ogma.yml'))

    for handler in logging.root.handlers[:]:
        logging.root.removeHandler(handler)
    logging.basicConfig(level=level, format=LOG_FORMAT)

    logger = logging.getLogger('ogma')
    logger.debug('Log level set to: %s', logging.getLevelName(level))
    return logger
