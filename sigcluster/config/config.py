"""Project configuration: built-in defaults overlaid with a YAML file."""

import copy
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from . import defaults

logger = logging.getLogger(__name__)

SECTIONS = ('clustering', 'logging', 'paths')


def candidate_config_files() -> List[Path]:
    """Locations searched, in order, when no file is named explicitly."""
    return [
        Path.cwd() / 'sigcluster.yml',
        Path(defaults.PROJECT_ROOT) / 'config.yml',
        Path.home() / '.sigcluster' / 'config.yml',
    ]


def in_test_mode() -> bool:
    """True under pytest or with SIGCLUSTER_TEST_MODE=true."""
    forced = os.environ.get('SIGCLUSTER_TEST_MODE', 'false').lower() == 'true'
    return forced or 'PYTEST_CURRENT_TEST' in os.environ


def deep_merge(base: dict, override: dict) -> dict:
    """Merge ``override`` into ``base`` in place, recursing into nested mappings."""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def read_yaml(path: Path) -> Dict[str, Any]:
    """Parse a YAML config file; an empty file yields an empty mapping."""
    with open(path, 'r') as file:
        content = yaml.safe_load(file)
    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ValueError(f"{path}: top level must be a mapping")
    return content


class Config:
    """Settings for clustering, logging and paths.

    An explicitly named file must load. Otherwise the first existing
    candidate file is used, except in test mode where only the defaults
    apply. A discovered file that fails to parse is reported and ignored.
    """

    def __init__(self, config_file: Optional[Union[str, Path]] = None):
        self.settings: Dict[str, Any] = self.load_defaults()
        self.source: Optional[Path] = None

        if config_file is not None:
            self.source = Path(config_file)
            self.update(read_yaml(self.source))
        elif in_test_mode():
            logger.debug("Test mode detected - ignoring discovered config files")
        else:
            self._load_discovered()

    def _load_discovered(self):
        found = next((p for p in candidate_config_files() if p.is_file()), None)
        if found is None:
            return
        try:
            self.update(read_yaml(found))
        except (OSError, ValueError, yaml.YAMLError) as e:
            logger.warning(f"Ignoring config file {found}: {e}")
            return
        self.source = found
        logger.info(f"Loaded configuration from {found}")

    def load_defaults(self) -> Dict[str, Any]:
        return {
            section: copy.deepcopy(getattr(defaults, section.upper()))
            for section in SECTIONS
        }

    def get(self, key: str, default: Any = None) -> Any:
        """Read a value by dotted key, e.g. ``get('clustering.tol')``."""
        node: Any = self.settings
        for part in key.split('.'):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def update(self, overrides: Dict[str, Any]):
        deep_merge(self.settings, overrides)

    @property
    def clustering(self) -> Dict[str, Any]:
        return self.settings['clustering']

    @property
    def logging(self) -> Dict[str, Any]:
        return self.settings['logging']

    @property
    def paths(self) -> Dict[str, Any]:
        return self.settings['paths']


# Global configuration instance
config = Config()
