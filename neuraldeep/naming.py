"""
naming.py
~~~~~~~~~

Model identities follow two forms:

- ``baseName``: the implicit first version (version 0)
- ``baseName_<version>``: an explicit non-negative integer version
"""

import re
from typing import Tuple

from neuraldeep.errors import InvalidNameError

BASE_NAME_PATTERN = re.compile(r'^[A-Za-z][A-Za-z0-9]*$')
IDENTITY_PATTERN = re.compile(r'^(?P<base>[A-Za-z][A-Za-z0-9]*)(?:_(?P<version>\d+))?$')


def validate_base_name(base_name: str) -> str:
    """Return ``base_name`` unchanged or raise InvalidNameError."""
    if not isinstance(base_name, str) or not BASE_NAME_PATTERN.match(base_name):
        raise InvalidNameError(
            f"Base name {base_name!r} is invalid: use letters and digits, "
            f"starting with a letter"
        )
    return base_name


def parse_identity(identity: str) -> Tuple[str, int]:
    """
    Split an identity into (base_name, version).

    >>> parse_identity('net_3')
    ('net', 3)
    >>> parse_identity('net')
    ('net', 0)
    """
    match = IDENTITY_PATTERN.match(identity) if isinstance(identity, str) else None
    if match is None:
        raise InvalidNameError(
            f"Identity {identity!r} must be 'name' or 'name_version'"
        )
    version = match.group('version')
    return match.group('base'), int(version) if version is not None else 0


def format_identity(base_name: str, version: int) -> str:
    """Build the stored identity for a versioned artifact."""
    validate_base_name(base_name)
    if version < 0:
        raise InvalidNameError(f"Version must be non-negative, got {version}")
    return f"{base_name}_{version}"
