"""
Duplicate document detection.

A fingerprint is the SHA-256 of the whole uploaded file. Duplicates are looked
up among the documents of the uploader's organization before any processing.
"""

from opengmao.database.helpers.transactionManagement import transactional
from opengmao.database.helpers.identifiers import to_uuid
from opengmao.database.daos.document_dao import DocumentDao
from sqlalchemy.orm import Session
from typing import Optional
import hashlib
import logging

logger = logging.getLogger("uvicorn")


def generate_file_fingerprint(data: bytes) -> str:
    """SHA-256 hex digest of the file content."""
    return hashlib.sha256(data).hexdigest()


@transactional
def check_duplicate_document(session: Session, fingerprint: str, organization_id: Optional[str]) -> dict:
    """
    Check whether the organization already uploaded this exact file.

    Parameters
    ----------
    session : Session
        Active SQLAlchemy session (injected by @transactional).
    fingerprint : str
        File fingerprint.
    organization_id : str | None
        Organization of the uploader.

    Returns
    -------
    dict
        {'is_duplicate': bool, 'existing_document': {id, file_name, asset_id,
        asset_name, uploaded_at} | None}
    """
    logger.info("🔍 Checking for duplicate upload...")
    row = DocumentDao().fetchDocumentByFingerprint(session, fingerprint, to_uuid(organization_id))
    if row is None:
        logger.info("✅ Not a duplicate")
        return {"is_duplicate": False, "existing_document": None}
    document, asset = row
    logger.info(f"⚠️ DUPLICATE DETECTED: {document.file_name} for {asset.name}")
    return {
        "is_duplicate": True,
        "existing_document": {
            "id": str(document.id),
            "file_name": document.file_name,
            "asset_id": str(asset.id),
            "asset_name": asset.name,
            "uploaded_at": document.created_at.isoformat() if document.created_at else None,
        },
    }


@transactional
def store_document_fingerprint(session: Session, document_id: str, fingerprint: str) -> bool:
    document = DocumentDao().updateDocument(session, to_uuid(document_id), {"file_fingerprint": fingerprint})
    if document is not None:
        logger.info("🔐 Document fingerprint stored")
    return document is not None
