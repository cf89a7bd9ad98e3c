"""
Flask application serving composed scenario maps.

Static maps are returned as image bytes, interactive maps as standalone
HTML. Base-map tiles are fetched by the browser from the tile provider;
this app serves no tiles itself.
"""

import os

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt
from flask import Flask, Response, jsonify, request

from composer import MapComposer
from config import get_scenario, list_scenarios
from errors import GeoLayersError
from interactive import to_html
from layers import RenderMode
from logging_config import get_logger, setup_logging

logger = get_logger("app")

app = Flask(__name__)

MIME_TYPES = {
    "png": "image/png",
    "svg": "image/svg+xml",
    "pdf": "application/pdf",
    "jpg": "image/jpeg",
}


def _composer(name: str) -> MapComposer:
    scenario = get_scenario(name)
    # Server-side setting only; clients never choose filesystem paths
    data_dir = app.config.get("GEOLAYERS_DATA_DIR")
    if data_dir:
        scenario = scenario.with_data_dir(data_dir)
    return MapComposer(scenario)


@app.errorhandler(KeyError)
def handle_unknown(error: KeyError):
    return jsonify({"error": str(error.args[0]) if error.args else str(error)}), 404


@app.errorhandler(FileNotFoundError)
def handle_missing_data(error: FileNotFoundError):
    return jsonify({
        "error": "Dataset files not found. Please ensure data files are in the data directory.",
        "details": str(error),
    }), 404


@app.errorhandler(GeoLayersError)
def handle_pipeline_error(error: GeoLayersError):
    return jsonify({"error": str(error), "type": type(error).__name__}), 400


@app.route("/api/scenarios")
def api_list_scenarios():
    """API endpoint to list available scenarios."""
    return jsonify(list_scenarios())


@app.route("/api/scenarios/<name>/layers")
def api_scenario_layers(name: str):
    """API endpoint describing the composed layers of a scenario."""
    mode = request.args.get("mode", RenderMode.STATIC.value)
    try:
        mode = RenderMode(mode)
    except ValueError:
        return jsonify({"error": f"Unknown mode: {mode}"}), 400

    composed = _composer(name).compose(mode)
    return jsonify(composed.summary())


@app.route("/api/scenarios/<name>/static.<format>")
def api_static_map(name: str, format: str):
    """API endpoint returning the static map as an image."""
    if format not in MIME_TYPES:
        return jsonify({
            "error": f"Unsupported format: {format}",
            "available": list(MIME_TYPES),
        }), 400
    dpi = request.args.get("dpi", 150, type=int)

    composer = _composer(name)
    fig, _ = composer.render_static()
    try:
        image_bytes = composer.static_renderer.to_bytes(fig, format=format, dpi=dpi)
    finally:
        plt.close(fig)

    return Response(image_bytes, mimetype=MIME_TYPES[format])


@app.route("/api/scenarios/<name>/interactive")
def api_interactive_map(name: str):
    """API endpoint returning the interactive map as HTML."""
    web_map = _composer(name).render_interactive()
    return Response(to_html(web_map), mimetype="text/html")


if __name__ == "__main__":
    setup_logging(os.getenv("GEOLAYERS_LOG_LEVEL", "INFO"))
    app.run(debug=True, host="0.0.0.0", port=5000)
