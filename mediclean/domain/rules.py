"""Cross-field rules for waste logs and pickup requests.

Each function returns a ``{field: message}`` mapping, empty when the data
is consistent. Schemas call them on input and services call them again on
the merged state of an update.
"""

import datetime
from typing import Any, Dict, Optional

from .value_objects import WasteCategory


def flatten_waste_log(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Map the nested API shape of a waste log onto its column names.

    Only keys present in ``payload`` appear in the result, so partial
    updates stay partial.
    """
    flat = {key: payload[key] for key in (
        'category', 'subcategory', 'volume_kg', 'description', 'handling_instructions',
        'images', 'logged_at',
    ) if key in payload}

    storage = payload.get('storage_conditions') or {}
    for bound in ('min', 'max'):
        if bound in (storage.get('temperature') or {}):
            flat[f'storage_temperature_{bound}'] = storage['temperature'][bound]
        if bound in (storage.get('humidity') or {}):
            flat[f'storage_humidity_{bound}'] = storage['humidity'][bound]
    if 'special_requirements' in storage:
        flat['storage_special_requirements'] = storage['special_requirements']

    container = payload.get('container_info') or {}
    for key in ('type', 'quantity', 'condition'):
        if key in container:
            flat[f'container_{key}'] = container[key]

    if payload.get('location'):
        flat['longitude'], flat['latitude'] = payload['location']['coordinates']
    return flat


def waste_log_errors(data: Dict[str, Any]) -> Dict[str, str]:
    """Check flattened waste log columns."""
    errors: Dict[str, str] = {}
    category = data.get('category')
    if category:
        try:
            category = WasteCategory.from_string(category)
        except ValueError:
            category = None
    if category is WasteCategory.OTHERS and not data.get('subcategory'):
        errors['subcategory'] = "Subcategory is required when category is 'others'"
    if category is not None and category.requires_handling_instructions and not data.get('handling_instructions'):
        errors['handling_instructions'] = f"Handling instructions are required for {category.value} waste"

    temp_min, temp_max = data.get('storage_temperature_min'), data.get('storage_temperature_max')
    if temp_min is not None and temp_max is not None and temp_min > temp_max:
        errors['storage_conditions'] = "Minimum temperature cannot exceed maximum temperature"

    hum_min, hum_max = data.get('storage_humidity_min'), data.get('storage_humidity_max')
    for value in (hum_min, hum_max):
        if value is not None and not 0 <= value <= 100:
            errors['storage_conditions'] = "Humidity must be between 0 and 100"
    if hum_min is not None and hum_max is not None and hum_min > hum_max:
        errors['storage_conditions'] = "Minimum humidity cannot exceed maximum humidity"
    return errors


def pickup_request_errors(data: Dict[str, Any], now: Optional[datetime.datetime] = None) -> Dict[str, str]:
    now = now or datetime.datetime.utcnow()
    errors: Dict[str, str] = {}
    if data.get('is_emergency'):
        if not data.get('emergency_reason'):
            errors['emergency_reason'] = "Emergency reason is required for emergency requests"
        deadline = data.get('response_deadline')
        if not deadline:
            errors['response_deadline'] = "Response deadline is required for emergency requests"
        elif deadline <= now:
            errors['response_deadline'] = "Response deadline must be in the future"
    if data.get('is_scheduled'):
        preferred = data.get('preferred_date')
        if not preferred:
            errors['preferred_date'] = "Preferred date is required for scheduled pickups"
        elif preferred <= now:
            errors['preferred_date'] = "Preferred date must be in the future"
    return errors
