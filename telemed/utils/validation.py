"""
Request parsing helpers. All failures raise InvalidArgument.
"""
from datetime import datetime, timezone

from flask import request

from telemed.errors import InvalidArgument


def get_json_body():
    """Return the request JSON object or raise InvalidArgument."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidArgument('Request body must be a JSON object')
    return data


def parse_datetime(value, field='dateTime'):
    """
    Parse an ISO-8601 string into a naive UTC datetime.
    Offsets are converted to UTC; values without an offset are taken as UTC.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith('Z') or text.endswith('z'):
            text = text[:-1] + '+00:00'
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            raise InvalidArgument(f'Field "{field}" must be a valid ISO-8601 date and time')
    else:
        raise InvalidArgument(f'Field "{field}" is required')

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def parse_int(value, field):
    if isinstance(value, bool):
        raise InvalidArgument(f'Field "{field}" must be an integer id')
    try:
        return int(value)
    except (TypeError, ValueError):
        raise InvalidArgument(f'Field "{field}" must be an integer id')


def parse_bool_arg(value):
    """Query-string flags: 'true', '1', 'yes' are true."""
    return str(value).lower() in ('1', 'true', 'yes') if value is not None else False


def require_choice(value, choices, field='status'):
    if value not in choices:
        raise InvalidArgument(f'Invalid {field}. Valid values: {", ".join(choices)}')
    return value


def clean_text(value):
    """Strip strings; anything that is not a string becomes empty."""
    return value.strip() if isinstance(value, str) else ''
