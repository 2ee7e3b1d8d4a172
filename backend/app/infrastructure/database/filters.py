"""Reusable WHERE-clause builders shared by repositories and search strategies."""

from sqlalchemy import ColumnElement, func, or_, true
from sqlalchemy.orm import InstrumentedAttribute

ROOT_FOLDER = "/"


def folder_clause(column: InstrumentedAttribute, folder: str | None) -> ColumnElement[bool]:
    """Restrict ``column`` to a folder subtree.

    ``None`` or an empty string means no restriction, ``"/"`` means articles at
    the root only. Any other value matches that folder and its subfolders,
    case-insensitively.
    """
    if folder is None or folder == "":
        return true()
    if folder == ROOT_FOLDER:
        return column == ""
    normalized = folder.strip("/").lower()
    if not normalized:
        return column == ""
    lowered = func.lower(column)
    return or_(lowered == normalized, lowered.like(f"{normalized}/%"))
