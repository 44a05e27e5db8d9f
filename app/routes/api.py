"""JSON API used by the viewer page: layer toggles, legend, townships, selection."""
import logging
from functools import wraps

from flask import Blueprint, current_app, jsonify, request

bp = Blueprint("api", __name__, url_prefix="/api")

logger = logging.getLogger(__name__)


def _controller():
    return current_app.extensions["viewer_controller"]


def locked(view):
    """Serialize access to the controller across request threads."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        with current_app.extensions["viewer_lock"]:
            return view(*args, **kwargs)

    return wrapper


@bp.route("/layers", methods=["GET"])
@locked
def list_layers():
    """Entries of the layer-toggle control."""
    return jsonify({"success": True, "layers": _controller().control_entries()})


@bp.route("/layers/<layer_id>", methods=["POST"])
@locked
def toggle_layer(layer_id):
    data = request.get_json(silent=True)
    if not data or not isinstance(data.get("visible"), bool):
        return jsonify({"success": False, "error": "'visible' (true/false) is required"}), 400
    try:
        layer = _controller().toggle_layer(layer_id, data["visible"])
    except KeyError:
        return jsonify({"success": False, "error": "Layer not found"}), 404
    return jsonify({"success": True, "layer": layer.to_dict()})


@bp.route("/legend", methods=["GET"])
@locked
def legend():
    return jsonify({"success": True, "entries": _controller().legend()})


@bp.route("/townships", methods=["GET"])
@locked
def townships():
    controller = _controller()
    return jsonify({
        "success": True,
        "townships": controller.townships(),
        "selected": controller.manager.region,
    })


@bp.route("/townships", methods=["POST"])
@locked
def select_township():
    data = request.get_json(silent=True) or {}
    name = data.get("name")
    if not isinstance(name, str):
        return jsonify({"success": False, "error": "'name' is required"}), 400
    controller = _controller()
    matches = controller.select_township(name)
    return jsonify({
        "success": True,
        "name": name,
        "matches": matches,
        "layer_id": controller.manager.region_layer_id,
        "messages": controller.drain_messages(),
    })


@bp.route("/features/select", methods=["POST"])
@locked
def select_feature():
    data = request.get_json(silent=True) or {}
    layer_id = data.get("layer_id")
    feature_id = data.get("feature_id")
    if not layer_id or feature_id is None:
        return jsonify({"success": False, "error": "'layer_id' and 'feature_id' are required"}), 400
    try:
        attributes = _controller().select_feature(layer_id, str(feature_id))
    except KeyError as e:
        return jsonify({"success": False, "error": str(e.args[0])}), 404
    return jsonify({"success": True, "attributes": attributes})


@bp.route("/features/clear", methods=["POST"])
@locked
def clear_selection():
    _controller().clear_selection()
    return jsonify({"success": True})


@bp.route("/status", methods=["GET"])
@locked
def status():
    return jsonify({"success": True, **_controller().status()})
