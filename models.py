# models.py
import uuid
from datetime            import datetime, timezone
from extensions          import db
from flask_login         import UserMixin
from sqlalchemy.orm      import validates

from errors              import ValidationError
from validators          import extract_domain, is_valid_url


def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


def isoformat(value):
    return value.isoformat(timespec='milliseconds') + 'Z' if value else None


class User(UserMixin, db.Model):
    id               = db.Column(db.Integer, primary_key=True)
    email            = db.Column(db.String(120), unique=True, nullable=False)
    password         = db.Column(db.String(256), nullable=False)
    capture_enabled  = db.Column(db.Boolean, nullable=False, default=True)
    retention_days   = db.Column(db.Integer, nullable=False, default=30)
    show_breadcrumbs = db.Column(db.Boolean, nullable=False, default=True)
    created_at       = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at       = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @classmethod
    def find(cls, user_id):
        try:
            return db.session.get(cls, int(user_id))
        except (TypeError, ValueError):
            return None

    @property
    def preferences(self):
        return {
            'captureEnabled': self.capture_enabled,
            'retentionDays': self.retention_days,
            'showBreadcrumbs': self.show_breadcrumbs,
        }

    def update_preferences(self, preferences):
        if 'captureEnabled' in preferences:
            self.capture_enabled = preferences['captureEnabled']
        if 'retentionDays' in preferences:
            self.retention_days = preferences['retentionDays']
        if 'showBreadcrumbs' in preferences:
            self.show_breadcrumbs = preferences['showBreadcrumbs']
        self.updated_at = utcnow()

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'preferences': self.preferences,
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
        }


class HistoryItem(db.Model):
    __tablename__ = 'history_item'

    id         = db.Column(db.String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    user_id    = db.Column(db.Integer, db.ForeignKey('user.id', ondelete='CASCADE'), nullable=False)
    url        = db.Column(db.String(2048), nullable=False)
    title      = db.Column(db.String(1024), nullable=False)
    image_url  = db.Column(db.String(2048), nullable=False)
    favicon    = db.Column(db.String(2048))
    domain     = db.Column(db.String(255), nullable=False)
    timestamp  = db.Column(db.DateTime, nullable=False, default=utcnow)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        db.Index('ix_history_user_timestamp', 'user_id', 'timestamp'),
        db.Index('ix_history_user_domain', 'user_id', 'domain'),
        db.Index('ix_history_user_url', 'user_id', 'url'),
    )

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if not self.domain and self.url:
            self.domain = extract_domain(self.url)

    @validates('url', 'image_url')
    def _validate_url(self, key, value):
        if not is_valid_url(value):
            raise ValidationError(f'{value} is not a valid {key.replace("_", " ")}')
        return value

    @validates('favicon')
    def _validate_favicon(self, key, value):
        if not value:
            return None
        if not is_valid_url(value):
            raise ValidationError(f'{value} is not a valid favicon URL')
        return value

    @validates('title')
    def _validate_title(self, key, value):
        if not isinstance(value, str) or not value.strip():
            raise ValidationError('Page title is required')
        return value.strip()

    def to_dict(self):
        return {
            'id': self.id,
            'userId': self.user_id,
            'url': self.url,
            'title': self.title,
            'imageUrl': self.image_url,
            'favicon': self.favicon,
            'domain': self.domain,
            'timestamp': isoformat(self.timestamp),
            'createdAt': isoformat(self.created_at),
        }
