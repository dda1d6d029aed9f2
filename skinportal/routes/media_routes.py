import os

from flask import Blueprint, current_app, send_file

from skinportal.services.media_store import LOCAL_URL_PREFIX, LocalMediaStore
from skinportal.utils.response import error

media_bp = Blueprint("media", __name__)


@media_bp.route("/media/<path:name>", methods=["GET"])
def serve_media(name):
    """Public image URLs for the local media backend."""
    store = current_app.extensions["media_store"]
    if not isinstance(store, LocalMediaStore):
        return error("Image not found", 404)

    path = store.path_for(LOCAL_URL_PREFIX + name)
    if not os.path.isfile(path):
        return error("Image not found", 404)
    return send_file(path)
