"""
Document DAO

Purpose
-------
Data-access layer for `AssetDocument` and `DocumentChunk`:
- Document rows: create, fetch (by id, by asset, by fingerprint within an
  organization, latest version of a file), update, delete with promotion of
  the superseded version
- Chunks: bulk insert, fetch the first chunks of an asset, fetch chunks with
  their embeddings for vector scoring

Design
------
- Requires an active SQLAlchemy `Session` supplied by the caller.
- Chunks are inserted with `add_all`; the service commits once per batch.
"""

from sqlalchemy.orm import Session
from sqlalchemy import asc, desc, or_
from opengmao.database.entities.asset_document import AssetDocument
from opengmao.database.entities.document_chunk import DocumentChunk
from opengmao.database.entities.asset import Asset
from uuid import UUID
from typing import List, Optional, Tuple


class DocumentDao:
    """
    Data Access Object for documents and their chunks.
    """

    def createDocument(self, session: Session, document: AssetDocument) -> AssetDocument:
        """
        Stage a new document row.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        document : AssetDocument
            Entity to add.

        Returns
        -------
        AssetDocument
        """
        try:
            session.add(document)
            return document
        except Exception as e:
            print(f"Error in DocumentDao.createDocument. Error: {e}")
            raise e

    def fetchDocumentById(self, session: Session, document_id: UUID) -> Optional[AssetDocument]:
        try:
            return session.query(AssetDocument).filter(AssetDocument.id == document_id).one_or_none()
        except Exception as e:
            print(f"Error in DocumentDao.fetchDocumentById. Error: {e}")
            raise e

    def fetchDocumentsByAsset(self, session: Session, asset_id: UUID,
                              include_archived: bool = True) -> List[AssetDocument]:
        """Documents of an asset, newest first."""
        if asset_id is None:
            return []
        try:
            query = session.query(AssetDocument).filter(AssetDocument.asset_id == asset_id)
            if not include_archived:
                query = query.filter(AssetDocument.archived_at.is_(None))
            return query.order_by(desc(AssetDocument.created_at)).all()
        except Exception as e:
            print(f"Error in DocumentDao.fetchDocumentsByAsset. Error: {e}")
            raise e

    def fetchDocumentByFingerprint(self, session: Session, fingerprint: str,
                                   organization_id: Optional[UUID]) -> Optional[Tuple[AssetDocument, Asset]]:
        """
        Find a document with the same fingerprint among the organization's assets.

        Returns
        -------
        tuple[AssetDocument, Asset] | None
            The oldest matching document and its asset.
        """
        try:
            return (
                session.query(AssetDocument, Asset)
                .join(Asset, Asset.id == AssetDocument.asset_id)
                .filter(AssetDocument.file_fingerprint == fingerprint)
                .filter(Asset.organization_id == organization_id)
                .order_by(asc(AssetDocument.created_at))
                .first()
            )
        except Exception as e:
            print(f"Error in DocumentDao.fetchDocumentByFingerprint. Error: {e}")
            raise e

    def updateDocument(self, session: Session, document_id: UUID, fields: dict) -> Optional[AssetDocument]:
        """Apply `fields` to a document; None when it does not exist."""
        try:
            document = session.query(AssetDocument).filter(AssetDocument.id == document_id).one_or_none()
            if document is None:
                return None
            for key, value in fields.items():
                setattr(document, key, value)
            return document
        except Exception as e:
            print(f"Error in DocumentDao.updateDocument. Error: {e}")
            raise e

    def fetchLatestDocument(self, session: Session, asset_id: UUID,
                            file_name: Optional[str] = None) -> Optional[AssetDocument]:
        """Newest non-archived document flagged `is_latest`, optionally for one file name."""
        if asset_id is None:
            return None
        try:
            query = (
                session.query(AssetDocument)
                .filter(AssetDocument.asset_id == asset_id)
                .filter(AssetDocument.is_latest.is_(True))
                .filter(AssetDocument.archived_at.is_(None))
            )
            if file_name:
                query = query.filter(AssetDocument.file_name == file_name)
            return query.order_by(desc(AssetDocument.created_at)).first()
        except Exception as e:
            print(f"Error in DocumentDao.fetchLatestDocument. Error: {e}")
            raise e

    def deleteDocument(self, session: Session, document_id: UUID) -> bool:
        """
        Delete a document and its chunks.

        When the deleted document is the latest version, the version it
        superseded becomes the latest again. Links pointing at the deleted
        row are cleared.
        """
        if document_id is None:
            return False
        try:
            document = session.query(AssetDocument).filter(AssetDocument.id == document_id).one_or_none()
            if document is None:
                return False
            if document.is_latest and document.supersedes:
                session.query(AssetDocument).filter(AssetDocument.id == document.supersedes).update(
                    {"is_latest": True, "superseded_by": None}, synchronize_session=False
                )
            session.query(AssetDocument).filter(AssetDocument.superseded_by == document_id).update(
                {"superseded_by": None}, synchronize_session=False
            )
            session.query(AssetDocument).filter(AssetDocument.supersedes == document_id).update(
                {"supersedes": None}, synchronize_session=False
            )
            session.query(DocumentChunk).filter(DocumentChunk.document_id == document_id).delete()
            deleted = session.query(AssetDocument).filter(AssetDocument.id == document_id).delete()
            return deleted > 0
        except Exception as e:
            print(f"Error in DocumentDao.deleteDocument. Error: {e}")
            raise e

    def createChunks(self, session: Session, chunks: List[DocumentChunk]) -> int:
        """Stage a batch of chunks; returns the batch size."""
        try:
            session.add_all(chunks)
            return len(chunks)
        except Exception as e:
            print(f"Error in DocumentDao.createChunks. Error: {e}")
            raise e

    def fetchFirstChunks(self, session: Session, asset_id: UUID, limit: int = 20) -> List[DocumentChunk]:
        """The first `limit` chunks of an asset in chunk order."""
        try:
            return (
                session.query(DocumentChunk)
                .filter(DocumentChunk.asset_id == asset_id)
                .order_by(asc(DocumentChunk.chunk_index))
                .limit(limit)
                .all()
            )
        except Exception as e:
            print(f"Error in DocumentDao.fetchFirstChunks. Error: {e}")
            raise e

    def fetchChunksForSearch(self, session: Session, asset_ids: List[UUID],
                             document_types: Optional[List[str]] = None) -> List[Tuple[DocumentChunk, Optional[AssetDocument]]]:
        """
        Fetch chunks (with their document) of the given assets for vector scoring.

        Parameters
        ----------
        session : Session
            Active SQLAlchemy session.
        asset_ids : list[UUID]
            Assets whose chunks are candidates.
        document_types : list[str], optional
            Keep only chunks whose document carries one of these types
            (single `document_type` or any of `document_types`).

        Returns
        -------
        list[tuple[DocumentChunk, AssetDocument | None]]
        """
        try:
            if not asset_ids:
                return []
            rows = (
                session.query(DocumentChunk, AssetDocument)
                .outerjoin(AssetDocument, AssetDocument.id == DocumentChunk.document_id)
                .filter(DocumentChunk.asset_id.in_(asset_ids))
                .filter(DocumentChunk.embedding.isnot(None))
                .filter(or_(AssetDocument.id.is_(None), AssetDocument.archived_at.is_(None)))
                .all()
            )
            if not document_types:
                return rows
            wanted = set(document_types)
            filtered = []
            for chunk, document in rows:
                types = set((document.document_types or []) if document else [])
                if document and document.document_type:
                    types.add(document.document_type)
                if types & wanted:
                    filtered.append((chunk, document))
            return filtered
        except Exception as e:
            print(f"Error in DocumentDao.fetchChunksForSearch. Error: {e}")
            raise e
