"""
PHID generation.

A PHID is a globally unique, database-independent identifier of the form
`PHID-<TYPE>-<20 random characters>`, where TYPE is a four-letter code naming
the kind of object. Record types that use PHIDs call `generate_phid` from
their `generate_phid()` method:

    def generate_phid(self):
        return generate_phid("NOTE")
"""

from __future__ import annotations

import re
import secrets
import string

PHID_PREFIX = "PHID"
PHID_RANDOM_LENGTH = 20

_ALPHABET = string.ascii_lowercase + string.digits
_TYPE_CODE = re.compile(r"^[A-Z]{4}$")
_PHID = re.compile(r"^PHID-([A-Z]{4})-[a-z0-9]{20}$")


def generate_phid(type_code: str) -> str:
    """Return a new PHID for the given four-letter uppercase type code."""
    if not _TYPE_CODE.match(type_code):
        raise ValueError(f"PHID type code must be four uppercase letters, got {type_code!r}")
    suffix = "".join(secrets.choice(_ALPHABET) for _ in range(PHID_RANDOM_LENGTH))
    return f"{PHID_PREFIX}-{type_code}-{suffix}"


def phid_type(phid: str) -> str | None:
    """Extract the type code from a PHID, or None if it is not one."""
    match = _PHID.match(phid or "")
    return match.group(1) if match else None


__all__ = ["PHID_PREFIX", "PHID_RANDOM_LENGTH", "generate_phid", "phid_type"]
