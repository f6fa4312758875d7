import math
import re

from errors import ValidationError

SOIL_TYPES = [
    'Clay',
    'Sandy',
    'Silty',
    'Peaty',
    'Chalky',
    'Loamy',
    'Clay Loam',
    'Sandy Clay',
    'Silty Clay',
    'Sandy Loam',
]

EMAIL_RE = re.compile(r'\S+@\S+\.\S+')


def _text(data, key):
    val = data.get(key)
    if val is None:
        return ''
    return str(val).strip()


def _positive_number(raw):
    try:
        num = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(num) or num <= 0:
        return None
    return num


def validate_farmland(data):
    """Return a cleaned farmland dict or raise ValidationError with per-field messages."""
    errors = {}
    name = _text(data, 'name')
    location = _text(data, 'location')
    size_raw = _text(data, 'size_hectares') or _text(data, 'size')
    soil_type = _text(data, 'soil_type')

    if not name: errors['name'] = 'Name is required'
    if not location: errors['location'] = 'Location is required'
    size = None
    if not size_raw:
        errors['size'] = 'Size is required'
    else:
        size = _positive_number(size_raw)
        if size is None:
            errors['size'] = 'Size must be a positive number'
    if not soil_type:
        errors['soil_type'] = 'Soil type is required'
    elif soil_type not in SOIL_TYPES:
        errors['soil_type'] = f'Soil type must be one of: {", ".join(SOIL_TYPES)}'

    if errors:
        raise ValidationError(errors)
    return {'name': name, 'location': location, 'size_hectares': size, 'soil_type': soil_type}


def validate_crop(data):
    errors = {}
    cleaned = {}
    for key, label in (('name', 'Crop name'), ('variety', 'Variety'),
                       ('water_requirement', 'Water requirement'), ('ideal_temperature', 'Ideal temperature')):
        cleaned[key] = _text(data, key)
        if not cleaned[key]:
            errors[key] = f'{label} is required'

    days_raw = _text(data, 'growth_period_days')
    if not days_raw:
        errors['growth_period_days'] = 'Growth period is required'
    else:
        try:
            days = int(days_raw)
        except ValueError:
            days = 0
        if days <= 0:
            errors['growth_period_days'] = 'Growth period must be a positive whole number of days'
        else:
            cleaned['growth_period_days'] = days

    if errors:
        raise ValidationError(errors)
    return cleaned


def validate_profile(data):
    errors = {}
    cleaned = {k: _text(data, k) for k in ('name', 'email', 'contact_number', 'address')}

    if not cleaned['name']: errors['name'] = 'Name is required'
    if not cleaned['email']:
        errors['email'] = 'Email is required'
    elif not EMAIL_RE.search(cleaned['email']):
        errors['email'] = 'Email is invalid'
    if not cleaned['contact_number']: errors['contact_number'] = 'Contact number is required'
    if not cleaned['address']: errors['address'] = 'Address is required'

    if errors:
        raise ValidationError(errors)
    return cleaned
