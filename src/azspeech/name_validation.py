"""Local naming rules for resource groups and Cognitive Services accounts.

These checks are pure: no network calls. They return an error message for
an invalid name, or None when the name passes the syntactic rules.

Account names double as the custom subdomain of the endpoint, so they
follow DNS label rules.
"""

import re

INSTANCE_NAME_MIN_LENGTH = 2
INSTANCE_NAME_MAX_LENGTH = 63
RESOURCE_GROUP_NAME_MAX_LENGTH = 90

_INSTANCE_NAME_CHARS = re.compile(r"^[a-z0-9-]+$")
_RESOURCE_GROUP_NAME_CHARS = re.compile(r"^[-\w._()]+$")


def check_instance_name(name: str) -> str | None:
    """Syntactic check of an account name.

    Example:
        >>> check_instance_name("myspeech") is None
        True
        >>> check_instance_name("my--speech")
        'The name cannot contain consecutive hyphens.'
    """
    if not name:
        return "The name cannot be empty."
    if len(name) < INSTANCE_NAME_MIN_LENGTH or len(name) > INSTANCE_NAME_MAX_LENGTH:
        return (
            f"The name must be between {INSTANCE_NAME_MIN_LENGTH} and "
            f"{INSTANCE_NAME_MAX_LENGTH} characters long."
        )
    if not _INSTANCE_NAME_CHARS.match(name):
        return "The name can only contain lowercase letters, numbers and hyphens."
    if name.startswith("-") or name.endswith("-"):
        return "The name cannot start or end with a hyphen."
    if "--" in name:
        return "The name cannot contain consecutive hyphens."
    return None


def check_resource_group_name(name: str) -> str | None:
    """Syntactic check of a resource group name.

    Example:
        >>> check_resource_group_name("my_rg(1)") is None
        True
        >>> check_resource_group_name("rg.")
        'The resource group name cannot end with a period.'
    """
    if not name:
        return "The resource group name cannot be empty."
    if len(name) > RESOURCE_GROUP_NAME_MAX_LENGTH:
        return (
            f"The resource group name must be at most "
            f"{RESOURCE_GROUP_NAME_MAX_LENGTH} characters long."
        )
    if not _RESOURCE_GROUP_NAME_CHARS.match(name):
        return (
            "The resource group name can only contain letters, numbers, underscores, "
            "parentheses, hyphens and periods."
        )
    if name.endswith("."):
        return "The resource group name cannot end with a period."
    return None


def sanitize_instance_name(value: str) -> str:
    """Turn arbitrary text into a valid account name (best effort).

    Lower-cases, replaces disallowed characters with hyphens, collapses
    hyphen runs, trims hyphens at both ends and truncates to the maximum
    length.

    Example:
        >>> sanitize_instance_name("John.Doe-speechaiproj-ais-20240101120000")
        'john-doe-speechaiproj-ais-20240101120000'
    """
    name = re.sub(r"[^a-z0-9-]", "-", value.lower())
    name = re.sub(r"-{2,}", "-", name).strip("-")
    return name[:INSTANCE_NAME_MAX_LENGTH].rstrip("-")


__all__ = [
    "INSTANCE_NAME_MAX_LENGTH",
    "INSTANCE_NAME_MIN_LENGTH",
    "RESOURCE_GROUP_NAME_MAX_LENGTH",
    "check_instance_name",
    "check_resource_group_name",
    "sanitize_instance_name",
]
