"""Database models for persisted planner state."""

from datetime import datetime
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


class StoredSnapshot(db.Model):
    """
    One serialized piece of planner state.

    Keys look like 'assignments:2024-05-17', 'assignments:current',
    'personnel', 'availability-tags' or 'pending-deletions'. The payload is
    JSON text and is only interpreted by db_service.
    """
    __tablename__ = 'stored_snapshots'

    id = db.Column(db.Integer, primary_key=True)
    key = db.Column(db.String(100), unique=True, nullable=False, index=True)
    payload_json = db.Column(db.Text, nullable=False, default='null')

    # Timestamps
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def __repr__(self):
        return f'<StoredSnapshot {self.key}>'

    def to_dict(self):
        return {
            'key': self.key,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None
        }


def init_db(app):
    """Initialize the database with the Flask app."""
    db.init_app(app)

    with app.app_context():
        db.create_all()
