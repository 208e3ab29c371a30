import logging
import re
from datetime import datetime, timezone

from sqlalchemy import func, or_, update

from errors import ValidationError
from models import CareEvent, Plant, utcnow

log = logging.getLogger(__name__)

# Event kind -> the Plant column caching its most recent timestamp.
EVENT_KINDS = {
    "watered": "last_watered",
    "repotted": "last_repotted",
}

_DATE_ONLY = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def parse_event_date(raw, now):
    """Resolve a caller-supplied date into a naive UTC timestamp.

    ``YYYY-MM-DD`` becomes midnight UTC of that day, full ISO timestamps are
    converted to UTC (naive ones are taken as UTC already). Missing input
    means ``now``; so does anything unparseable, which is logged.
    """
    if raw is None or raw == "":
        return now
    if not isinstance(raw, str):
        log.warning("Ignoring non-string event date %r, using now", raw)
        return now

    text = raw.strip()
    try:
        if _DATE_ONLY.match(text):
            return datetime.strptime(text, "%Y-%m-%d")
        if text.endswith(("Z", "z")):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
        if parsed.tzinfo is not None:
            parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    except (ValueError, OverflowError):
        # OverflowError: offset pushes the instant outside the datetime range.
        log.warning("Unparseable event date %r, using now", raw)
        return now
    return parsed


class EventLedger:
    """Append-only care history with the per-kind "last event" projection."""

    def __init__(self, session, plants, clock=utcnow):
        self.session = session
        self.plants = plants
        self.clock = clock

    def append(self, plant_id, user_id, kind, supplied=None):
        plant = self.plants.fetch_owned(plant_id, user_id)
        column = self._cache_column(kind)
        at = parse_event_date(supplied, self.clock())

        event = CareEvent(plant_id=plant.id, kind=kind, at=at, user_id=user_id)
        self.session.add(event)
        # Compare-and-set in one statement so a backdated insert can never
        # move the cached value backwards.
        self.session.execute(
            update(Plant)
            .where(Plant.id == plant.id)
            .where(or_(column.is_(None), column < at))
            .values({column.key: at})
        )
        self.session.commit()
        log.info("User %s logged %s for plant %s at %s", user_id, kind, plant.id, at.isoformat())
        return event

    def history(self, plant_id, user_id):
        plant = self.plants.fetch_owned(plant_id, user_id)
        return (self.session.query(CareEvent)
                .filter(CareEvent.plant_id == plant.id)
                .order_by(CareEvent.at.desc(), CareEvent.id.desc())
                .all())

    def rebuild(self, plant_id=None):
        """Recompute every cached field from MAX(at); returns plants touched."""
        query = self.session.query(Plant)
        if plant_id is not None:
            query = query.filter(Plant.id == plant_id)

        touched = 0
        for plant in query.all():
            for kind, field in EVENT_KINDS.items():
                latest = (self.session.query(func.max(CareEvent.at))
                          .filter(CareEvent.plant_id == plant.id, CareEvent.kind == kind)
                          .scalar())
                setattr(plant, field, latest)
            touched += 1
        self.session.commit()
        return touched

    @staticmethod
    def _cache_column(kind):
        field = EVENT_KINDS.get(kind)
        if field is None:
            raise ValidationError(f"unknown event kind {kind!r}")
        return getattr(Plant, field)
