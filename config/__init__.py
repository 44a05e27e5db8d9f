import os
from pathlib import Path

from dotenv import load_dotenv

# Load environment variables
basedir = Path(__file__).parent
load_dotenv(basedir.parent / ".env")


class Config:
    """Base configuration class."""

    SECRET_KEY = os.environ.get("SECRET_KEY") or "dev-key-please-change"
    TEMPLATES_AUTO_RELOAD = True
    JSON_AS_ASCII = False
    # Path of viewer.json; None uses config/viewer.json
    VIEWER_CONFIG = os.environ.get("VIEWER_CONFIG")
    # Seconds before a feature-service request is abandoned; None uses viewer.json
    HTTP_TIMEOUT = os.environ.get("VIEWER_HTTP_TIMEOUT")
    # Run discovery when the app is created
    DISCOVER_ON_START = True


class DevelopmentConfig(Config):
    """Development configuration."""

    DEBUG = True


class ProductionConfig(Config):
    """Production configuration."""

    DEBUG = False


class TestingConfig(Config):
    """Testing configuration; discovery is driven by the tests."""

    TESTING = True
    DISCOVER_ON_START = False


# Configuration presets
config = {
    "development": DevelopmentConfig,
    "production": ProductionConfig,
    "testing": TestingConfig,
    "default": DevelopmentConfig,
}

from .manager import ConfigManager, config_manager
from .schemas import (GeometryType, LayerStyle, PopupTemplate, SourceConfig,
                      ViewerConfig)

# Public API
__all__ = [
    "config",
    "Config",
    "DevelopmentConfig",
    "ProductionConfig",
    "TestingConfig",
    "ConfigManager",
    "config_manager",
    "GeometryType",
    "LayerStyle",
    "PopupTemplate",
    "SourceConfig",
    "ViewerConfig",
]
