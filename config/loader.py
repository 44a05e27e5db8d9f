import json
import os
from pathlib import Path
from typing import Dict, Any, Optional

VIEWER_FILE = 'viewer.json'


class ConfigLoader:
    def __init__(self, config_dir: Optional[str] = None):
        """Initialize the configuration loader.

        Args:
            config_dir: Directory containing configuration files. Defaults to the 'config' directory
                      in the same directory as this module.
        """
        if config_dir is None:
            self.config_dir = Path(__file__).parent
        else:
            self.config_dir = Path(config_dir)

        self._config_cache: Dict[str, Any] = {}

    def resolve(self, filename: str) -> Path:
        """Return the path for ``filename``; absolute paths are used as given."""
        if not filename.endswith('.json'):
            filename += '.json'
        path = Path(filename)
        return path if path.is_absolute() else self.config_dir / path

    def load_config(self, filename: str) -> Dict[str, Any]:
        """Load a JSON configuration file.

        Args:
            filename: Name of the configuration file (with or without .json extension),
                   relative to the config directory, or an absolute path.

        Returns:
            Dict containing the configuration

        Raises:
            FileNotFoundError: If the configuration file doesn't exist
            json.JSONDecodeError: If the file contains invalid JSON
        """
        config_path = self.resolve(filename)
        key = str(config_path)

        if key in self._config_cache:
            return dict(self._config_cache[key])

        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            config = json.load(f)

        self._config_cache[key] = config
        return dict(config)

    def get_viewer_config(self) -> Dict[str, Any]:
        """Get the raw viewer configuration, honouring ``VIEWER_CONFIG``."""
        return self.load_config(os.environ.get('VIEWER_CONFIG', VIEWER_FILE))

