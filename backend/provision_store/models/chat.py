from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class ChatMessage(db.Model):
    """One chatbot exchange (question and the reply that was sent)."""
    __tablename__ = "chat_history"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    message = db.Column(db.Text, nullable=False)
    response = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "message": self.message,
            "response": self.response,
            "created_at": to_utc_z(self.created_at),
        }
