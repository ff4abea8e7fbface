"""Validation and rendering of slot coordinates.

A slot inside a warehouse is addressed by three free-text labels: rack,
level and aisle. Warehouses do not share a labelling scheme, so the only
rules enforced here are that every label is a non-blank string that fits
the storage column. Location codes are always rendered rack-level-aisle.
"""
from typing import List, NamedTuple, NewType, Optional

from warehouse_geolocation.config import config
from warehouse_geolocation.exceptions import ValidationError

Coordinate = NewType('Coordinate', str)

SEPARATOR = '-'
COORDINATE_FIELDS = ('rack', 'level', 'aisle')


class SlotLocation(NamedTuple):
    """A (rack, level, aisle) triple inside one warehouse."""
    rack: Coordinate
    level: Coordinate
    aisle: Coordinate

    @property
    def code(self) -> str:
        return format_location_code(self.rack, self.level, self.aisle)

    def to_dict(self):
        return {'rack': self.rack, 'level': self.level, 'aisle': self.aisle}


def _max_length() -> int:
    return config.geolocation_rules['coordinate_max_length']


def _invalid_fields(rack, level, aisle) -> List[str]:
    max_length = _max_length()
    invalid = []
    for name, value in zip(COORDINATE_FIELDS, (rack, level, aisle)):
        if not isinstance(value, str) or not value.strip() or len(value.strip()) > max_length:
            invalid.append(name)
    return invalid


def validate_location(rack, level, aisle) -> bool:
    """Return True if all three coordinates are usable labels."""
    return not _invalid_fields(rack, level, aisle)


def require_valid_location(rack, level, aisle) -> SlotLocation:
    """Validate coordinates and return them as a stripped SlotLocation.

    Raises:
        ValidationError: If any coordinate is missing, blank or too long
    """
    invalid = _invalid_fields(rack, level, aisle)
    if invalid:
        raise ValidationError(
            f"Invalid location format: {', '.join(invalid)} must be non-empty "
            f"and at most {_max_length()} characters",
            details={'fields': invalid}
        )
    return SlotLocation(Coordinate(rack.strip()), Coordinate(level.strip()), Coordinate(aisle.strip()))


def format_location_code(rack, level, aisle) -> str:
    """Render the canonical location code, e.g. ``A1-02-03``.

    Missing components render empty; non-string values are rendered with str().
    """
    return SEPARATOR.join('' if value is None else str(value) for value in (rack, level, aisle))


def parse_location_code(code: Optional[str]) -> SlotLocation:
    """Split a location code produced by format_location_code.

    Only codes whose components contain no separator can be recovered.

    Raises:
        ValidationError: If the code does not hold exactly three parts
    """
    parts = (code or '').split(SEPARATOR)
    if len(parts) != 3 or not all(part.strip() for part in parts):
        raise ValidationError(f"Invalid location code: '{code}'", details={'code': code})
    return require_valid_location(*parts)
