# Overview: Flask API routes for the store assistant chatbot.

from flask import Blueprint, jsonify, request

from ..services import chatbot_service


chatbot_bp = Blueprint("chatbot", __name__, url_prefix="/api/chatbot")


@chatbot_bp.post("")
def chat():
    data = request.get_json(silent=True)
    message = data.get("message") if isinstance(data, dict) else None

    if not message or not isinstance(message, str) or not message.strip():
        return jsonify({"error": "Message is required"}), 400

    response = chatbot_service.handle_message(message)
    return jsonify({"response": response}), 200


@chatbot_bp.get("/history")
def history():
    limit = request.args.get("limit", default=50, type=int)
    limit = min(max(limit, 1), 200)
    return jsonify({"items": chatbot_service.recent_history(limit)}), 200
