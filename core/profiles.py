"""Profile naming, content validation and id allocation.

Design:
- SQLite stores metadata (id, name, path) via core.storage.
- The JSON content lives in a file named after the id under the config dir.
"""
import json
import time

PROFILE_EXTENSION = ".json"


def validate_profile_name(profile_name):
    """Validate a user-assigned profile name."""
    if not profile_name:
        return False, "Config name cannot be empty."
    if not profile_name.strip():
        return False, "Config name cannot be empty."
    return True, ""


def validate_profile_content(content):
    """Check that content is well-formed JSON. Returns (success, message)."""
    if content is None:
        return False, "Config content is empty."
    try:
        json.loads(content)
    except (TypeError, ValueError) as exc:
        return False, f"Config content is not valid JSON: {exc}"
    return True, ""


def new_profile_id(existing_ids=(), now=None):
    """Return a time-derived id (epoch milliseconds) not present in existing_ids."""
    candidate = int((time.time() if now is None else now) * 1000)
    taken = set(existing_ids)
    while str(candidate) in taken:
        candidate += 1
    return str(candidate)


def profile_file_name(profile_id):
    """Storage-relative location of a profile's content."""
    return f"{profile_id}{PROFILE_EXTENSION}"
