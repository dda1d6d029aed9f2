from flask import Blueprint, current_app, request
from flask_jwt_extended import jwt_required

from skinportal.utils.identity import current_profile
from skinportal.utils.response import isoformat, success

chat_bp = Blueprint("chat", __name__, url_prefix="/api/chat")


@chat_bp.route("/ask", methods=["POST"])
@jwt_required()
def ask():
    """
    Body:
    {
      "message": "how should I look after a mole?"
    }
    """
    data = request.get_json(silent=True) or {}
    caller = current_profile()

    reply = current_app.extensions["chat_log"].ask(caller.id, data.get("message"))
    return success({"reply": reply}, "Reply generated")


@chat_bp.route("/history", methods=["GET"])
@jwt_required()
def history():
    caller = current_profile()
    msgs = current_app.extensions["chat_log"].history(caller.id)

    return success([
        {
            "id": m.id,
            "message": m.message,
            "response": m.response,
            "created_at": isoformat(m.created_at),
        }
        for m in msgs
    ], "Chat history loaded")
