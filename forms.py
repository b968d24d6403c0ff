# Input validation helpers shared by models and routes
import re

EMAIL_PATTERN = re.compile(r'[^@\s]+@[^@\s]+\.[^@\s]+')

# Minimum 8 characters, at least 1 letter, 1 number and 1 special character in @$!%*?&.:;
PASSWORD_PATTERN = re.compile(
    r'(?=.*[A-Za-z])(?=.*\d)(?=.*[@$!%*?&.:;])[A-Za-z\d@$!%*?&.:;]{8,}')


def validate_email(email):
    return isinstance(email, str) and EMAIL_PATTERN.fullmatch(email) is not None


def validate_password(password):
    return isinstance(password, str) and PASSWORD_PATTERN.fullmatch(password) is not None


def require_text(data, key):
    """Return a stripped, non-empty string field from a JSON body or raise ValueError."""
    value = data.get(key) if isinstance(data, dict) else None
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"'{key}' is required")
    return value.strip()


def optional_tag_list(data, key='tags'):
    tags = data.get(key) if isinstance(data, dict) else None
    if tags is None:
        return []
    if not isinstance(tags, list) or not all(isinstance(tag, str) for tag in tags):
        raise ValueError(f"'{key}' must be a list of strings")
    return tags


def parse_coordinate(data, key, limit):
    value = data.get(key) if isinstance(data, dict) else None
    if isinstance(value, bool):
        raise ValueError(f"'{key}' must be a number")
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"'{key}' must be a number")
    if not -limit <= number <= limit:
        raise ValueError(f"'{key}' must be between {-limit} and {limit}")
    return number


def normalize_tag_name(name):
    if not isinstance(name, str) or not name.strip():
        raise ValueError("Tag name must be a non-empty string")
    return name.strip()


def optional_rate(data, key='rate'):
    value = data.get(key) if isinstance(data, dict) else None
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"'{key}' must be a number")
    if not 0 <= value <= 5:
        raise ValueError(f"'{key}' must be between 0 and 5")
    return float(value)


def optional_text(data, key):
    value = data.get(key) if isinstance(data, dict) else None
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValueError(f"'{key}' must be a string")
    return value.strip() or None
