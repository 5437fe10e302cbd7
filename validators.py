import base64
import binascii
import re
from datetime import datetime, timezone

from pydantic import EmailStr, HttpUrl, TypeAdapter
from pydantic import ValidationError as SchemaError

from errors import BadRequest

DATA_URL_RE = re.compile(r'^data:image/[\w.+-]+;base64,', re.IGNORECASE)

http_url = TypeAdapter(HttpUrl)
email_address = TypeAdapter(EmailStr)


def parse_url(url):
    """``HttpUrl`` for an absolute http/https URL, ``None`` for anything else.

    Single-label hosts such as ``localhost`` are refused; IP literals are not.
    """
    if not isinstance(url, str) or not url.strip():
        return None
    try:
        parsed = http_url.validate_python(url)
    except SchemaError:
        return None
    host = parsed.host or ''
    if '.' not in host.strip('.') and not host.startswith('['):
        return None
    return parsed


def is_valid_url(url):
    return parse_url(url) is not None


def extract_domain(url):
    """Host of ``url`` as the WHATWG parser normalizes it: lowercased, punycode, no port."""
    parsed = parse_url(url)
    if parsed is None or not parsed.host:
        raise BadRequest('Invalid URL format')
    return parsed.host


def strip_data_url(image_base64):
    return DATA_URL_RE.sub('', image_base64.strip(), count=1)


def is_valid_base64(value):
    if not isinstance(value, str) or not value.strip():
        return False
    try:
        base64.b64decode(strip_data_url(value), validate=True)
    except (binascii.Error, ValueError):
        return False
    return True


def decode_image(image_base64):
    try:
        data = base64.b64decode(strip_data_url(image_base64), validate=True)
    except (binascii.Error, ValueError):
        raise BadRequest('Invalid image format. Must be base64 encoded')
    if not data:
        raise BadRequest('Screenshot image is required')
    return data


def validate_screenshot_upload(data):
    if not isinstance(data, dict):
        raise BadRequest('Request body must be a JSON object')

    image_base64 = data.get('imageBase64')
    url = data.get('url')
    title = data.get('title')
    favicon = data.get('favicon')

    if not image_base64:
        raise BadRequest('Screenshot image is required')
    if not is_valid_base64(image_base64):
        raise BadRequest('Invalid image format. Must be base64 encoded')
    if not url:
        raise BadRequest('URL is required')
    if not is_valid_url(url):
        raise BadRequest('Invalid URL format')
    if not isinstance(title, str) or not title.strip():
        raise BadRequest('Page title is required')
    if favicon and not is_valid_url(favicon):
        raise BadRequest('Invalid favicon URL')


def validate_credentials(data):
    if not isinstance(data, dict):
        raise BadRequest('Request body must be a JSON object')
    email = data.get('email')
    password = data.get('password')
    if not email or not password:
        raise BadRequest('Email and password are required')
    if not isinstance(email, str):
        raise BadRequest('Invalid email format')
    try:
        email = email_address.validate_python(email.strip())
    except SchemaError:
        raise BadRequest('Invalid email format')
    return email.lower(), password


def is_strong_password(password):
    return (
        isinstance(password, str)
        and len(password) >= 8
        and re.search(r'[a-z]', password) is not None
        and re.search(r'[A-Z]', password) is not None
        and re.search(r'\d', password) is not None
        and re.search(r'[^A-Za-z0-9]', password) is not None
    )


def validate_signup(data):
    email, password = validate_credentials(data)
    if not is_strong_password(password):
        raise BadRequest(
            'Password must be at least 8 characters long and contain at least one uppercase letter, '
            'one lowercase letter, one number, and one special character'
        )
    return email, password


def validate_preferences(preferences, min_days=1, max_days=365):
    if not isinstance(preferences, dict) or not preferences:
        raise BadRequest('Preferences are required')

    cleaned = {}
    for key in ('captureEnabled', 'showBreadcrumbs'):
        if key in preferences:
            if not isinstance(preferences[key], bool):
                raise BadRequest(f'{key} must be a boolean')
            cleaned[key] = preferences[key]

    if 'retentionDays' in preferences:
        days = preferences['retentionDays']
        if isinstance(days, bool) or not isinstance(days, int):
            raise BadRequest('retentionDays must be an integer')
        if not min_days <= days <= max_days:
            raise BadRequest(f'Retention period must be between {min_days} and {max_days} days')
        cleaned['retentionDays'] = days

    if not cleaned:
        raise BadRequest('No supported preferences supplied')
    return cleaned


def parse_positive_int(value, default):
    """Positive integer from a query value, ``default`` for anything else."""
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    return number if number > 0 else default


def parse_datetime(value):
    """ISO-8601 string to a naive UTC datetime."""
    text = value.strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        raise BadRequest(f'Invalid date: {value}')
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
