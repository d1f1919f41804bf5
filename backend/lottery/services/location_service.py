# Overview: Resolves the location context every lottery operation is scoped to.

from __future__ import annotations

from ..extensions import db
from ..models import Location
from ..errors import LocationRequiredError, ValidationError
from ..validation import require_text, optional_text
from .concurrency import commit_with_retry


def require_location(location_id: int | None) -> Location:
    """
    Resolve a location id or refuse the operation.

    Raises:
        LocationRequiredError: id missing, unknown or deactivated
    """
    if location_id is None:
        raise LocationRequiredError("A resolved location is required for lottery operations")
    if isinstance(location_id, bool) or not isinstance(location_id, int):
        raise LocationRequiredError(f"Invalid location id: {location_id!r}")

    location = db.session.get(Location, location_id)
    if location is None:
        raise LocationRequiredError(f"Location {location_id} not found")
    if not location.is_active:
        raise LocationRequiredError(f"Location {location_id} is inactive")
    return location


def create_location(name: str, code: str | None = None, timezone: str = "UTC") -> Location:
    name = require_text("name", name, max_length=120)
    code = optional_text("code", code, max_length=32)

    if code and db.session.query(Location).filter_by(code=code).first():
        raise ValidationError(f"Location code '{code}' already exists")

    location = Location(name=name, code=code, timezone=timezone or "UTC", is_active=True)
    db.session.add(location)
    commit_with_retry()
    return location


def list_locations(include_inactive: bool = False) -> list[Location]:
    q = db.session.query(Location)
    if not include_inactive:
        q = q.filter_by(is_active=True)
    return q.order_by(Location.id.asc()).all()
