import re
from typing import Dict, Optional

from warehouse_geolocation.config import config
from warehouse_geolocation.exceptions import ValidationError

SKU_CODE_PATTERN = re.compile(r'^[A-Za-z0-9_-]+$')

def validate_sku_code(code: Optional[str]) -> Dict[str, str]:
    """Validate a SKU code.

    Args:
        code: SKU code to validate

    Returns:
        Dictionary with validation errors
    """
    errors = {}
    rules = config.geolocation_rules

    if not code or not code.strip():
        errors['code'] = 'SKU code is required'
    elif not SKU_CODE_PATTERN.match(code.strip()):
        errors['code'] = 'SKU code may only contain letters, digits, hyphens and underscores'
    elif len(code.strip()) < rules['sku_code_min_length']:
        errors['code'] = f"SKU code must be at least {rules['sku_code_min_length']} characters"
    elif len(code.strip()) > rules['sku_code_max_length']:
        errors['code'] = f"SKU code must be at most {rules['sku_code_max_length']} characters"

    return errors

def validate_warehouse_name(name: Optional[str]) -> Dict[str, str]:
    """Validate a warehouse name.

    Args:
        name: Warehouse name to validate

    Returns:
        Dictionary with validation errors
    """
    errors = {}
    max_length = config.geolocation_rules['warehouse_name_max_length']

    if not name or not name.strip():
        errors['name'] = 'Warehouse name is required'
    elif len(name.strip()) > max_length:
        errors['name'] = f"Warehouse name must be at most {max_length} characters"

    return errors

def raise_for_errors(errors: Dict[str, str]):
    """Raise ValidationError carrying the collected field errors, if any."""
    if errors:
        raise ValidationError('; '.join(errors.values()), details=errors)
