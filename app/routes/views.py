from flask import Blueprint, Response, current_app, render_template

bp = Blueprint("views", __name__)


def _controller():
    return current_app.extensions["viewer_controller"]


@bp.route("/")
def index():
    controller = _controller()
    return render_template(
        "index.html",
        viewer=controller.viewer,
        townships=controller.townships(),
        sentinel=controller.viewer.township_sentinel,
    )


@bp.route("/map")
def map_document():
    with current_app.extensions["viewer_lock"]:
        html = _controller().render_html()
    return Response(html, mimetype="text/html")
