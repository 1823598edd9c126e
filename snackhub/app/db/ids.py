"""
Identifier scheme for globally-unique rows.

ULIDs: 26 chars, Crockford base32, lexicographically sortable by creation
time, generated locally without a central allocator.
"""

from ulid import ULID

ID_LENGTH = 26


def new_id() -> str:
    return str(ULID())
