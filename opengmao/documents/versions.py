"""
Document versions.

A new revision of a manual supersedes the previous one: the old row loses its
``is_latest`` flag and points to its successor through ``superseded_by``, the
new row points back through ``supersedes``. Archived documents keep their
chunks but are left out of listings and search.
"""

from opengmao.database.helpers.transactionManagement import transactional
from opengmao.database.helpers.identifiers import to_uuid
from opengmao.database.daos.document_dao import DocumentDao
from sqlalchemy.orm import Session
from datetime import datetime, timezone
from typing import List, Optional
import logging
import re

logger = logging.getLogger("uvicorn")

DEFAULT_VERSION = "1.0"
MAX_CHAIN_DEPTH = 10


def increment_version(version: Optional[str]) -> str:
    """
    Next version label.

    ``2.3`` becomes ``2.4``, ``4`` becomes ``5`` and a ``YYYY-MM`` label moves
    to the following month. Any other label gets ``.1`` appended.

    Parameters
    ----------
    version : str | None
        Current label; empty means the first version.

    Returns
    -------
    str
    """
    if not version:
        return DEFAULT_VERSION
    version = version.strip()

    match = re.match(r"^(\d+)\.(\d+)$", version)
    if match:
        return f"{match.group(1)}.{int(match.group(2)) + 1}"

    if re.match(r"^\d+$", version):
        return str(int(version) + 1)

    match = re.match(r"^(\d{4})-(\d{2})$", version)
    if match:
        year, month = int(match.group(1)), int(match.group(2))
        if month >= 12:
            return f"{year + 1}-01"
        return f"{year}-{month + 1:02d}"

    return f"{version}.1"


@transactional
def get_version_chain(session: Session, document_id: str) -> Optional[List[dict]]:
    """
    All versions linked to a document, oldest first.

    Each entry carries ``chain_order``: negative for older versions, 0 for the
    requested document and positive for newer ones. Each direction is followed
    for at most MAX_CHAIN_DEPTH links.

    Returns
    -------
    list[dict] | None
        None when the document does not exist.
    """
    dao = DocumentDao()
    current = dao.fetchDocumentById(session, to_uuid(document_id))
    if current is None:
        return None

    seen = {current.id}
    older = []
    previous_id = current.supersedes
    while previous_id and len(older) < MAX_CHAIN_DEPTH and previous_id not in seen:
        previous = dao.fetchDocumentById(session, previous_id)
        if previous is None:
            break
        seen.add(previous.id)
        older.append(previous)
        previous_id = previous.supersedes

    newer = []
    next_id = current.superseded_by
    while next_id and len(newer) < MAX_CHAIN_DEPTH and next_id not in seen:
        successor = dao.fetchDocumentById(session, next_id)
        if successor is None:
            break
        seen.add(successor.id)
        newer.append(successor)
        next_id = successor.superseded_by

    chain = [{**doc.to_dict(), "chain_order": -(i + 1)} for i, doc in enumerate(older)]
    chain.reverse()
    chain.append({**current.to_dict(), "chain_order": 0})
    chain.extend({**doc.to_dict(), "chain_order": i + 1} for i, doc in enumerate(newer))
    return chain


@transactional
def get_latest_version(session: Session, asset_id: str, file_name: Optional[str] = None) -> Optional[dict]:
    document = DocumentDao().fetchLatestDocument(session, to_uuid(asset_id), file_name)
    return document.to_dict() if document else None


def suggest_next_version(asset_id: str, file_name: Optional[str] = None) -> str:
    """Label for the next upload: the latest version incremented, or 1.0."""
    latest = get_latest_version(asset_id=asset_id, file_name=file_name)
    if latest is None or not latest.get("version"):
        return DEFAULT_VERSION
    return increment_version(latest["version"])


@transactional
def supersede(session: Session, old_document_id: str, new_document_id: str,
              version_notes: Optional[str] = None) -> dict:
    """
    Mark `new_document_id` as the successor of `old_document_id`.

    The new document takes the incremented label of the old one unless it
    already carries a different label.

    Returns
    -------
    dict
        ``{"res": True, "old": ..., "new": ...}`` or ``{"res": False, "detail": ...}``.
    """
    dao = DocumentDao()
    old_id, new_id = to_uuid(old_document_id), to_uuid(new_document_id)
    if old_id is not None and old_id == new_id:
        return {"res": False, "detail": "Un document ne peut pas se remplacer lui-même"}
    old = dao.fetchDocumentById(session, old_id) if old_id else None
    new = dao.fetchDocumentById(session, new_id) if new_id else None
    if old is None or new is None:
        return {"res": False, "detail": "Document non trouvé"}
    if old.asset_id != new.asset_id:
        return {"res": False, "detail": "Les deux documents doivent appartenir au même équipement"}

    if not new.version or new.version == old.version:
        new.version = increment_version(old.version)
    old.is_latest = False
    old.superseded_by = new.id
    new.supersedes = old.id
    new.is_latest = True
    if version_notes:
        new.version_notes = version_notes
    session.flush()
    logger.info(f"📄 {old.file_name} v{old.version} superseded by {new.file_name} v{new.version}")
    return {"res": True, "old": old.to_dict(), "new": new.to_dict()}


@transactional
def archive_document(session: Session, document_id: str) -> Optional[dict]:
    document = DocumentDao().updateDocument(session, to_uuid(document_id),
                                            {"archived_at": datetime.now(timezone.utc)})
    return document.to_dict() if document else None


@transactional
def unarchive_document(session: Session, document_id: str) -> Optional[dict]:
    document = DocumentDao().updateDocument(session, to_uuid(document_id), {"archived_at": None})
    return document.to_dict() if document else None
