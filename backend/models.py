from dataclasses import dataclass
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def utcnow():
    """Naive UTC; every stored timestamp uses this convention."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_iso(value):
    if value is None:
        return None
    return value.isoformat(timespec="milliseconds") + "Z"


@dataclass(frozen=True)
class Owned:
    user_id: int


@dataclass(frozen=True)
class Unowned:
    """Legacy record from before accounts existed; shared by every user."""


class User(db.Model):
    __tablename__ = "users"
    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    password_hash = db.Column(db.String(128), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)
    plants = db.relationship('Plant', backref='owner', lazy=True)
    sessions = db.relationship('LoginSession', backref='user', lazy=True)


class LoginSession(db.Model):
    __tablename__ = "sessions"
    id = db.Column(db.String(64), primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False)


class Plant(db.Model):
    __tablename__ = "plants"
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    species = db.Column(db.String(100))
    location = db.Column(db.String(100))
    water_interval_days = db.Column(db.Integer, nullable=False, default=7)
    repot_interval_days = db.Column(db.Integer, nullable=False, default=365)
    notes = db.Column(db.Text)
    last_watered = db.Column(db.DateTime)
    last_repotted = db.Column(db.DateTime)
    # NULL marks a legacy shared plant; read it through `ownership`.
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=True, index=True)
    events = db.relationship('CareEvent', backref='plant', lazy=True,
                             cascade="all, delete-orphan")

    @property
    def ownership(self):
        if self.user_id is None:
            return Unowned()
        return Owned(self.user_id)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "species": self.species,
            "location": self.location,
            "water_interval_days": self.water_interval_days,
            "repot_interval_days": self.repot_interval_days,
            "notes": self.notes,
            "last_watered": to_iso(self.last_watered),
            "last_repotted": to_iso(self.last_repotted),
            "user_id": self.user_id,
        }


class CareEvent(db.Model):
    __tablename__ = "care_events"
    id = db.Column(db.Integer, primary_key=True)
    plant_id = db.Column(db.Integer, db.ForeignKey('plants.id'), nullable=False)
    kind = db.Column(db.String(32), nullable=False)
    at = db.Column(db.DateTime, nullable=False)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'))  # actor, for audit

    __table_args__ = (db.Index("ix_care_events_plant_kind_at", "plant_id", "kind", "at"),)

    def to_dict(self):
        return {"type": self.kind, "at": to_iso(self.at)}
