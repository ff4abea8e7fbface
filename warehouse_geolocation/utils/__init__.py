from .location_codec import (
    Coordinate,
    SlotLocation,
    validate_location,
    require_valid_location,
    format_location_code,
    parse_location_code
)
from .validation import validate_sku_code, validate_warehouse_name, raise_for_errors

__all__ = [
    'Coordinate',
    'SlotLocation',
    'validate_location',
    'require_valid_location',
    'format_location_code',
    'parse_location_code',
    'validate_sku_code',
    'validate_warehouse_name',
    'raise_for_errors'
]
