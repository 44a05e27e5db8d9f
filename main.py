import argparse
import logging
import os
import sys
from typing import Optional

from config import config, config_manager
from gis_core.core.client import FeatureServiceClient
from gis_core.core.controller import ViewerController
from gis_core.core.util import log_progress

OUTPUT_FILE = 'map.html'


def load_viewer(config_path: Optional[str]):
    """Load viewer.json (or ``config_path``); exits on an invalid file."""
    try:
        if config_path:
            return config_manager.load_viewer_config(config_path)
        return config_manager.get_viewer_config()
    except FileNotFoundError as e:
        log_progress(f"Error: {e}")
        sys.exit(1)
    except ValueError as e:
        log_progress(f"Error: {e}")
        sys.exit(1)


def main() -> None:
    """Discover every configured source and write the map page."""
    parser = argparse.ArgumentParser(description='Render the county GIS viewer map from remote feature services.')
    parser.add_argument('--config', type=str, default=None, help='Path to the viewer configuration file (default: config/viewer.json).')
    parser.add_argument('--output', type=str, default=OUTPUT_FILE, help='Where to write the rendered map HTML.')
    parser.add_argument('--township', type=str, default=None, help='Filter the map to one township before rendering.')
    parser.add_argument('--serve', action='store_true', help='Run the interactive web viewer instead of writing a file.')
    parser.add_argument('--port', type=int, default=5000, help='Port for --serve.')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging.')
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    viewer = load_viewer(args.config)

    if args.serve:
        from app import create_app

        app = create_app(config['development' if args.debug else 'production'], viewer=viewer)
        app.run(port=args.port, debug=args.debug, use_reloader=False)
        return

    timeout = float(os.environ.get('VIEWER_HTTP_TIMEOUT', viewer.http_timeout))
    controller = ViewerController(viewer, FeatureServiceClient(timeout=timeout))
    results = controller.start()

    log_progress("--- Discovery summary ---")
    for key, result in results.items():
        counts = result.registry.summary()
        log_progress(
            f"{key}: {result.final_kind} ({counts['active']} active, "
            f"{counts['placeholder']} placeholder, {counts['visible']} visible)"
        )
        for state, reason in result.reasons:
            log_progress(f"  {state.value}: {reason}")
    log_progress("-------------------------")

    if args.township:
        matches = controller.select_township(args.township)
        log_progress(f"[main] {args.township}: {len(matches)} matching feature(s)")

    output_dir = os.path.dirname(os.path.abspath(args.output))
    os.makedirs(output_dir, exist_ok=True)
    controller.save(args.output)
    log_progress(f"Saved map to {args.output}")


if __name__ == "__main__":
    main()
