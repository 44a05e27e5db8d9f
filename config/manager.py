import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

import jsonschema

from .loader import ConfigLoader
from .schemas.source_config import SourceConfig, ViewerConfig

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schemas" / "viewer.schema.json"


def validate_viewer_config(config_data: Dict[str, Any]) -> Optional[str]:
    """Validate raw viewer configuration against the JSON Schema.

    Returns an error message string if invalid, otherwise None.
    """
    with open(SCHEMA_PATH, "r", encoding="utf-8") as f:
        schema = json.load(f)
    try:
        jsonschema.validate(instance=config_data, schema=schema)
        return None
    except jsonschema.ValidationError as e:
        return e.message


class ConfigManager:
    """Manages configuration loading and validation."""

    def __init__(self, config_dir: Optional[str] = None):
        """Initialize the configuration manager.

        Args:
            config_dir: Directory containing configuration files. If None, uses default.
        """
        self.loader = ConfigLoader(config_dir)
        self._viewer_config: Optional[ViewerConfig] = None

    def get_viewer_config(self, validate: bool = True) -> ViewerConfig:
        """Get the viewer configuration.

        A missing file yields the built-in defaults (no sources) so the viewer
        still starts and shows the base map.

        Args:
            validate: If True, validates the configuration against the schema.

        Returns:
            ViewerConfig: The loaded and validated configuration.
        """
        if self._viewer_config is None:
            try:
                config_data = self.loader.get_viewer_config()
            except FileNotFoundError as e:
                logger.error(f"Viewer configuration not found: {e}")
                logger.warning("Using default viewer configuration")
                self._viewer_config = ViewerConfig()
                return self._viewer_config
            self._viewer_config = self._validate_viewer_config(config_data, validate)
        return self._viewer_config

    def _validate_viewer_config(
        self, config_data: Dict[str, Any], validate: bool = True
    ) -> ViewerConfig:
        """Validate the raw configuration and build a ViewerConfig.

        Raises:
            ValueError: If the configuration is invalid.
        """
        if validate:
            error = validate_viewer_config(config_data)
            if error:
                logger.error(f"Invalid viewer configuration: {error}")
                raise ValueError(f"Invalid viewer configuration: {error}")
        try:
            return ViewerConfig.from_dict(config_data)
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Invalid viewer configuration: {e}")
            raise ValueError(f"Invalid viewer configuration: {e}") from e

    def load_viewer_config(self, filename: str, validate: bool = True) -> ViewerConfig:
        """Load the viewer configuration from ``filename`` instead of the default file."""
        self._viewer_config = self._validate_viewer_config(self.loader.load_config(filename), validate)
        return self._viewer_config

    def get_config_value(self, key: str, default: Any = None) -> Any:
        """Get a configuration value by dot notation.

        Example:
            get_config_value('map.zoom')
        """
        value: Any = self.get_viewer_config().to_dict()
        try:
            for k in key.split("."):
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def get_source(self, key: str) -> Optional[SourceConfig]:
        for source in self.get_viewer_config().sources:
            if source.key == key:
                return source
        return None


# Create a default instance
config_manager = ConfigManager()
