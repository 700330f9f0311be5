"""
Random identifier generation for tasks and comments.

IDs are a short prefix plus random URL-safe characters, regenerated until
they do not collide with an existing ID.
"""

import secrets
import string
from collections.abc import Iterable

ID_CHARS = string.ascii_letters + string.digits + "_-"
ID_LENGTH = 8
MAX_ATTEMPTS = 100


def generate_id(existing: Iterable[str] = (), prefix: str = "s-", length: int = ID_LENGTH) -> str:
    """
    Generate an ID that is not in *existing*.

    Args:
        existing: IDs already in use
        prefix: Prefix for the new ID (tasks use ``s-``, comments ``c-``)
        length: Number of random characters after the prefix

    Returns:
        A new unique ID such as ``s-a7X3m2_q``

    Raises:
        RuntimeError: If no unique ID could be generated
    """
    taken = set(existing)
    for _ in range(MAX_ATTEMPTS):
        random_suffix = "".join(secrets.choice(ID_CHARS) for _ in range(length))
        new_id = f"{prefix}{random_suffix}"
        if new_id not in taken:
            return new_id

    raise RuntimeError(f"Failed to generate unique ID after {MAX_ATTEMPTS} attempts")
