import logging
import re

from sqlalchemy import or_

from errors import NotFound, ValidationError
from models import CareEvent, Owned, Plant, Unowned

log = logging.getLogger(__name__)

DEFAULT_WATER_INTERVAL_DAYS = 7
DEFAULT_REPOT_INTERVAL_DAYS = 365
MAX_INTERVAL_DAYS = 36500

_DIGITS = re.compile(r"\d{1,6}", re.ASCII)

TEXT_FIELDS = ("species", "location", "notes")
INTERVAL_FIELDS = {
    "water_interval_days": DEFAULT_WATER_INTERVAL_DAYS,
    "repot_interval_days": DEFAULT_REPOT_INTERVAL_DAYS,
}


def visible_to(plant, user_id):
    ownership = plant.ownership
    if isinstance(ownership, Unowned):
        return True
    if isinstance(ownership, Owned):
        return ownership.user_id == user_id
    raise TypeError(f"unknown ownership {ownership!r}")


def _omitted(value):
    return value is None or value == ""


def coerce_interval(field, value):
    """Whole days in 1..MAX_INTERVAL_DAYS from ints, integral floats or ASCII digit strings."""
    days = None
    if isinstance(value, int) and not isinstance(value, bool):
        days = value
    elif isinstance(value, float) and value.is_integer():
        days = int(value)
    elif isinstance(value, str) and _DIGITS.fullmatch(value.strip()):
        days = int(value.strip())
    if days is None or not 1 <= days <= MAX_INTERVAL_DAYS:
        raise ValidationError(f"{field} must be a whole number of days")
    return days


def _text(field, value):
    if value is None or isinstance(value, str):
        return value
    raise ValidationError(f"{field} must be text")


def _name(value):
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("name required")
    return value


class PlantRegistry:
    """Plant records scoped to the user that owns them."""

    def __init__(self, session):
        self.session = session

    def _scoped(self, user_id):
        return self.session.query(Plant).filter(
            or_(Plant.user_id.is_(None), Plant.user_id == user_id))

    def list(self, user_id):
        return self._scoped(user_id).order_by(Plant.id.desc()).all()

    def fetch_owned(self, plant_id, user_id):
        plant = self._scoped(user_id).filter(Plant.id == plant_id).first()
        if plant is None or not visible_to(plant, user_id):
            raise NotFound()
        return plant

    def create(self, user_id, attrs):
        attrs = attrs or {}
        plant = Plant(name=_name(attrs.get("name")), user_id=user_id)
        for field in TEXT_FIELDS:
            setattr(plant, field, _text(field, attrs.get(field)))
        for field, default in INTERVAL_FIELDS.items():
            value = attrs.get(field)
            setattr(plant, field, default if _omitted(value) else coerce_interval(field, value))

        self.session.add(plant)
        self.session.commit()
        log.info("User %s created plant %s", user_id, plant.id)
        return plant

    def update(self, plant_id, user_id, attrs):
        plant = self.fetch_owned(plant_id, user_id)
        attrs = attrs or {}

        # Validate everything before touching the row.
        changes = {}
        if attrs.get("name") is not None:
            changes["name"] = _name(attrs["name"])
        for field in TEXT_FIELDS:
            if attrs.get(field) is not None:
                changes[field] = _text(field, attrs[field])
        for field in INTERVAL_FIELDS:
            if not _omitted(attrs.get(field)):
                changes[field] = coerce_interval(field, attrs[field])

        for field, value in changes.items():
            setattr(plant, field, value)
        self.session.commit()
        log.info("User %s updated plant %s (%s)", user_id, plant.id, ", ".join(sorted(changes)))
        return plant

    def delete(self, plant_id, user_id):
        plant = self.fetch_owned(plant_id, user_id)
        events = (self.session.query(CareEvent)
                  .filter(CareEvent.plant_id == plant.id)
                  .delete())
        self.session.delete(plant)
        self.session.commit()
        log.info("User %s deleted plant %s with %d events", user_id, plant_id, events)
