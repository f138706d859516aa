"""
Identifier helpers shared by the service layer.

UUID columns are declared with ``as_uuid=True``; values coming from JSON bodies
or query strings arrive as text and are converted here before reaching a query.
A malformed id cannot name any row, so it is treated like a missing one.
"""

from uuid import UUID
from typing import Optional, Union
import logging

logger = logging.getLogger("uvicorn")


def to_uuid(value: Union[str, UUID, None]) -> Optional[UUID]:
    """
    Coerce a string or UUID into a UUID.

    Parameters
    ----------
    value : str | UUID | None
        Raw identifier.

    Returns
    -------
    UUID | None
        Parsed identifier, or None when `value` is empty or not a valid UUID.
    """
    if value is None or value == "":
        return None
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        logger.warning(f"Malformed identifier ignored: {value!r}")
        return None
