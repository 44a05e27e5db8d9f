import logging
import threading
from typing import Optional

from flask import Flask
from flask_cors import CORS

from config import Config, ConfigManager, ViewerConfig
from gis_core.core.client import FeatureServiceClient
from gis_core.core.controller import ViewerController

logger = logging.getLogger(__name__)


def create_app(
    config_class=Config,
    viewer: Optional[ViewerConfig] = None,
    client: Optional[FeatureServiceClient] = None,
):
    app = Flask(__name__, template_folder="../templates")
    app.config.from_object(config_class)

    # Enable CORS for API endpoints
    CORS(app, resources={r"/api/*": {"origins": "*"}})

    if viewer is None:
        manager = ConfigManager()
        if app.config.get("VIEWER_CONFIG"):
            viewer = manager.load_viewer_config(app.config["VIEWER_CONFIG"])
        else:
            viewer = manager.get_viewer_config()
    if client is None:
        timeout = app.config.get("HTTP_TIMEOUT")
        client = FeatureServiceClient(timeout=float(timeout) if timeout else viewer.http_timeout)

    controller = ViewerController(viewer, client)
    app.extensions["viewer_controller"] = controller
    app.extensions["viewer_lock"] = threading.Lock()

    if app.config.get("DISCOVER_ON_START"):
        logger.info("Running layer discovery")
        controller.start()

    # Register blueprints
    from app.routes import api, views

    app.register_blueprint(api.bp)
    app.register_blueprint(views.bp)

    return app
