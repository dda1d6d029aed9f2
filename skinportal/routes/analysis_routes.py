import base64
import binascii
import logging

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import jwt_required

from skinportal.errors import GatewayError
from skinportal.services.analysis_gateway import strip_data_url

logger = logging.getLogger(__name__)

analysis_bp = Blueprint("analysis", __name__, url_prefix="/api/analysis")


@analysis_bp.route("", methods=["POST"])
@jwt_required()
def analyze_image():
    """
    Stateless image analysis, same contract as the hosted model function.

    Body: {"imageBase64": "<base64, data URL prefix optional>", "symptoms": "..."}
    Errors come back as {"error": "..."} with a non-2xx status.
    """
    data = request.get_json(silent=True) or {}
    image_b64 = data.get("imageBase64")
    if not image_b64 or not isinstance(image_b64, str):
        return jsonify({"error": "Please provide an image"}), 400

    try:
        image = base64.b64decode(strip_data_url(image_b64), validate=True)
    except (binascii.Error, ValueError):
        return jsonify({"error": "imageBase64 is not valid base64"}), 400

    try:
        result = current_app.extensions["analysis_gateway"].analyze(image, data.get("symptoms"))
    except GatewayError as e:
        logger.warning("Stateless analysis failed: %s", e)
        return jsonify({"error": e.message}), e.status_code

    result["needsDoctorReview"] = True
    return jsonify(result), 200
