"""
Document ingestion.

Turns an uploaded equipment manual into an asset, a document row and embedded
chunks ready for retrieval. ``ingest_document`` is a generator of progress
events ``{stage, progress, message, ...}``; the router writes each one as an
SSE frame. The last event is either ``complete`` (with the result) or
``error``.

Stages: uploading, loading, ocr, metadata, chunking, embedding, storing,
complete, error.
"""

from opengmao.database.helpers.transactionManagement import transactional
from opengmao.database.helpers.identifiers import to_uuid
from opengmao.database.daos.document_dao import DocumentDao
from opengmao.database.entities.asset_document import AssetDocument
from opengmao.database.entities.document_chunk import DocumentChunk
from opengmao.database.core.funcs import create_asset, get_asset
from opengmao.api.prompt_utilities import extract_text_from_pdf
from opengmao.cache.document_fingerprint import (
    generate_file_fingerprint,
    check_duplicate_document,
    store_document_fingerprint,
)
from opengmao.ai.metadata_extractor import extract_asset_metadata_cached
from opengmao.ai.document_classifier import classify_document, classify_document_types, detect_section_type
from opengmao.rag.chunker import split_text_into_chunks, estimate_page_number
from opengmao.rag.embeddings import generate_embeddings
from opengmao.dependencies.suggestions import generate_dependency_suggestions
from sqlalchemy.orm import Session
from datetime import datetime, timezone
from typing import Iterator, List, Optional
import logging
import re
import time

logger = logging.getLogger("uvicorn")

MIN_TEXT_LENGTH = 100
EMBEDDING_BATCH_SIZE = 40
INSERT_BATCH_SIZE = 20
PARAGRAPH_TARGET = 500
CLASSIFICATION_CONFIDENCE = 0.85
EXTRACTION_METHOD = "text"


def progress(stage: str, value: int, message: str, **extra) -> dict:
    event = {"stage": stage, "progress": value, "message": message}
    event.update({k: v for k, v in extra.items() if v is not None})
    return event


def _is_major_section(line: str) -> bool:
    return (
        line == line.upper()
        and 20 <= len(line) <= 60
        and len(line.split()) >= 3
        and bool(re.match(r"[A-Z]", line))
        and "-" not in line
        and "." not in line
    )


def clean_document_text(text: str) -> str:
    """
    Rebuild paragraphs from extracted PDF text.

    Page markers and form feeds are dropped, short lines are merged into
    paragraphs of about 500 characters ending on a sentence, and upper-case or
    numbered headings stay on their own line.
    """
    cleaned = re.sub(r"\[Page \d+\]", "", text, flags=re.IGNORECASE)
    cleaned = re.sub(r"^Page \d+/\d+$", "", cleaned, flags=re.MULTILINE)
    cleaned = cleaned.replace("\f", " ").replace("\r\n", "\n").replace("\t", " ")
    lines = [line.strip() for line in cleaned.split("\n") if line.strip()]

    paragraphs = []
    paragraph = ""
    for line in lines:
        numbered_header = bool(re.match(r"\d+[.\-]\s*[A-Z]", line)) and len(line) < 50
        if _is_major_section(line) or numbered_header:
            if paragraph:
                paragraphs.append(paragraph)
                paragraph = ""
            paragraphs.append(line)
            continue
        paragraph = f"{paragraph} {line}" if paragraph else line
        if len(paragraph) >= PARAGRAPH_TARGET and re.search(r"[.!?]$", paragraph):
            paragraphs.append(paragraph)
            paragraph = ""
    if paragraph:
        paragraphs.append(paragraph)

    return "\n\n".join(p for p in (re.sub(r" {2,}", " ", p).strip() for p in paragraphs) if p).strip()


@transactional
def create_document_record(session: Session, asset_id: str, file_name: str, file_size: int,
                           document_type: Optional[str], classification: dict) -> str:
    """Insert the document row in `processing` state; returns its id.

    The fingerprint is only stored once processing completed, so a failed
    import does not block a new attempt with the same file.
    """
    document = AssetDocument(
        asset_id=to_uuid(asset_id),
        file_name=file_name,
        file_size=file_size,
        document_type=document_type or classification["type"],
        document_type_confidence=1.0 if document_type else classification["confidence"],
        user_confirmed=bool(document_type),
    )
    DocumentDao().createDocument(session, document)
    return str(document.id)


@transactional
def store_chunks(session: Session, asset_id: str, document_id: str, chunks: List[dict],
                 embeddings: List[List[float]]) -> int:
    records = [
        DocumentChunk(
            asset_id=to_uuid(asset_id),
            document_id=to_uuid(document_id),
            content=chunk["content"],
            chunk_index=chunk["metadata"]["chunk_index"],
            page_number=chunk["metadata"]["page_number"],
            section_type=detect_section_type(chunk["content"]),
            chunk_metadata=chunk["metadata"],
            embedding=embedding,
        )
        for chunk, embedding in zip(chunks, embeddings)
    ]
    return DocumentDao().createChunks(session, records)


@transactional
def complete_document(session: Session, document_id: str, document_types: List[str], total_chunks: int) -> None:
    DocumentDao().updateDocument(session, to_uuid(document_id), {
        "document_types": document_types,
        "ai_classified": True,
        "classification_confidence": CLASSIFICATION_CONFIDENCE,
        "processing_status": "completed",
        "total_chunks": total_chunks,
        "processed_at": datetime.now(timezone.utc),
    })


def ingest_document(data: bytes, filename: str, user_id: str, organization_id: Optional[str] = None,
                    asset_id: Optional[str] = None, document_type: Optional[str] = None) -> Iterator[dict]:
    """
    Import a PDF manual.

    Parameters
    ----------
    data : bytes
        PDF content.
    filename : str
        Original file name.
    user_id : str
        Uploader (owner of a newly created asset).
    organization_id : str, optional
        Organization used for duplicate detection and dependency matching.
    asset_id : str, optional
        Attach the document to this existing asset instead of creating one.
    document_type : str, optional
        Type chosen by the user; the AI classification is used otherwise.

    Yields
    ------
    dict
        Progress events. Errors never escape: they become a final `error`
        event.
    """
    started = time.time()
    try:
        yield progress("uploading", 10, f"Fichier reçu: {filename}", currentStep=f"{len(data) / 1024:.0f} KB")

        fingerprint = generate_file_fingerprint(data)
        duplicate = check_duplicate_document(fingerprint=fingerprint, organization_id=organization_id)
        if duplicate["is_duplicate"]:
            existing = duplicate["existing_document"]
            yield progress("error", 0, f"Document déjà importé pour {existing['asset_name']}", duplicate=existing)
            return

        yield progress("loading", 15, "Extraction du texte...", currentStep="Analyse du PDF...")
        raw_text, pages = extract_text_from_pdf(data)
        yield progress("ocr", 60, "Lecture des pages terminée", currentPage=len(pages), totalPages=len(pages))

        text = clean_document_text(raw_text)
        logger.info(f"🧹 Cleaned text: {len(raw_text)} → {len(text)} chars")
        yield progress("metadata", 65, "Extraction terminée", currentStep=f"{len(text)} caractères extraits")
        if len(text) < MIN_TEXT_LENGTH:
            yield progress("error", 0, "PDF contient trop peu de texte")
            return

        yield progress("metadata", 68, "Extraction des métadonnées...", currentStep="Analyse IA...")
        metadata = extract_asset_metadata_cached(text)
        yield progress("metadata", 72, "Classification du document...")
        classification = classify_document(text)

        if asset_id:
            existing_asset = get_asset(asset_id=asset_id, with_extraction=False)
            if existing_asset is None:
                yield progress("error", 0, "Équipement introuvable")
                return
            asset_name = existing_asset["name"]
            yield progress("storing", 75, "Ajout du document à l'équipement...")
        else:
            yield progress("storing", 75, "Création de l'équipement...")
            created = create_asset(
                data={
                    "name": metadata["name"],
                    "code": f"{metadata['model'] or 'ASSET'}-{int(time.time() * 1000)}",
                    "location": "À définir",
                    "status": "operational",
                    "manufacturer": metadata["manufacturer"],
                    "model_number": metadata["model"],
                    "serial_number": metadata["serial_number"],
                    "category": metadata["category"],
                },
                organization_id=organization_id,
                created_by=user_id,
            )
            if not created["res"]:
                yield progress("error", 0, "Erreur création équipement")
                return
            asset_id = created["asset"]["id"]
            asset_name = created["asset"]["name"]

        document_id = create_document_record(
            asset_id=asset_id, file_name=filename, file_size=len(data), document_type=document_type,
            classification=classification,
        )
        final_type = document_type or classification["type"]

        yield progress("chunking", 78, "Découpage en sections...")
        chunks = split_text_into_chunks(text)
        for chunk in chunks:
            page_number = estimate_page_number(chunk["metadata"]["char_start"])
            chunk["metadata"] = {
                "chunk_index": chunk["metadata"]["chunk_index"],
                "page_number": page_number,
                "source_file": filename,
                "extraction_method": EXTRACTION_METHOD,
                "document_type": final_type,
            }
        yield progress("chunking", 80, f"{len(chunks)} sections créées", totalChunks=len(chunks))

        embeddings = []
        total_batches = max(1, -(-len(chunks) // EMBEDDING_BATCH_SIZE))
        for batch_number, start in enumerate(range(0, len(chunks), EMBEDDING_BATCH_SIZE), start=1):
            batch = [c["content"] for c in chunks[start:start + EMBEDDING_BATCH_SIZE]]
            embeddings.extend(generate_embeddings(batch))
            yield progress("embedding", 80 + int(batch_number / total_batches * 12),
                           f"Vectorisation batch {batch_number}/{total_batches}",
                           currentChunk=len(embeddings), totalChunks=len(chunks))

        yield progress("storing", 93, "Sauvegarde...", currentStep="Enregistrement dans la base...")
        stored = 0
        for start in range(0, len(chunks), INSERT_BATCH_SIZE):
            end = min(start + INSERT_BATCH_SIZE, len(chunks))
            try:
                stored += store_chunks(asset_id=asset_id, document_id=document_id,
                                       chunks=chunks[start:end], embeddings=embeddings[start:end])
            except Exception as e:
                logger.error(f"Insert error for chunks {start}-{end}: {e}")
            yield progress("storing", min(93 + int(end / len(chunks) * 5), 98), f"Sauvegarde {end}/{len(chunks)}")

        yield progress("storing", 95, "Classification IA des types...")
        document_types = classify_document_types(text, metadata)
        complete_document(document_id=document_id, document_types=document_types, total_chunks=stored)
        store_document_fingerprint(document_id=document_id, fingerprint=fingerprint)

        try:
            suggested = generate_dependency_suggestions(
                document_id=document_id, source_asset_id=asset_id, source_asset_name=asset_name,
                document_text=text, organization_id=organization_id,
            )
            logger.info(f"🔗 {suggested} dependency suggestions created")
        except Exception as e:
            logger.error(f"Dependency suggestion error: {e}")

        elapsed_ms = int((time.time() - started) * 1000)
        yield progress("complete", 100, f"Import réussi en {elapsed_ms / 1000:.0f}s", totalChunks=len(chunks), result={
            "success": True,
            "asset_id": asset_id,
            "document_id": document_id,
            "asset": {
                "name": metadata["name"],
                "manufacturer": metadata["manufacturer"],
                "model": metadata["model"],
                "category": metadata["category"],
            },
            "classification": {"type": classification["type"], "confidence": classification["confidence"]},
            "document_types": document_types,
            "extraction": {"method": EXTRACTION_METHOD, "pages": len(pages)},
            "chunks_created": stored,
            "processing_time_ms": elapsed_ms,
        })
    except Exception as e:
        logger.error(f"Ingestion error: {e}")
        yield progress("error", 0, str(e) or "Erreur interne")
