from .decorators import require_role, get_current_user

from .audit import log_audit

from .validation import (
    get_json_body,
    parse_datetime,
    parse_int,
    parse_bool_arg,
    require_choice,
    clean_text,
)

__all__ = [
    # Decorators
    "require_role",
    "get_current_user",
    # Audit
    "log_audit",
    # Request validation
    "get_json_body",
    "parse_datetime",
    "parse_int",
    "parse_bool_arg",
    "require_choice",
    "clean_text",
]
