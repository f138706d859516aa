"""
Unit tests for document versions.

Tests cover:
- Version label increments
- Supersede links, version chains and the latest version
- Archiving (hidden from listings and search)
- Promotion of the previous version when the latest one is deleted
- The version routes
"""

import uuid
from unittest.mock import patch

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from opengmao.api import ai_router
from opengmao.api.utils import create_access_token
from opengmao.database.core import funcs
from opengmao.database.entities.asset_document import AssetDocument
from opengmao.database.entities.document_chunk import DocumentChunk
from opengmao.documents import versions
from opengmao.rag import smart_search

ORG = str(uuid.uuid4())


def make_asset(name="Compresseur GA37", code="CMP-001"):
    return funcs.create_asset(data={"name": name, "code": code, "location": "Atelier A"},
                              organization_id=ORG)["asset"]


def add_document(engine, asset_id, file_name="manuel.pdf", version="1.0", embedding=None):
    document = AssetDocument(asset_id=uuid.UUID(asset_id), file_name=file_name, version=version)
    document_id = str(document.id)
    with Session(engine) as session:
        session.add(document)
        if embedding is not None:
            session.add(DocumentChunk(asset_id=uuid.UUID(asset_id), document_id=document.id,
                                      content=f"{file_name} {version}", chunk_index=0, page_number=1,
                                      embedding=embedding))
        session.commit()
    return document_id


class TestIncrementVersion:
    """Test increment_version."""

    @pytest.mark.parametrize("version, expected", [
        ("1.0", "1.1"),
        ("2.9", "2.10"),
        ("4", "5"),
        ("2024-03", "2024-04"),
        ("2024-12", "2025-01"),
        ("rev B", "rev B.1"),
        (None, "1.0"),
        ("", "1.0"),
    ])
    def test_labels(self, version, expected):
        """Test each label format."""
        assert versions.increment_version(version) == expected


class TestSupersede:
    """Test supersede, get_version_chain and get_latest_version."""

    def test_links_and_chain(self, db_engine):
        """Test that three revisions form an ordered chain."""
        asset = make_asset()
        first = add_document(db_engine, asset["id"])
        second = add_document(db_engine, asset["id"])
        third = add_document(db_engine, asset["id"])

        res = versions.supersede(old_document_id=first, new_document_id=second, version_notes="Nouveau schéma")
        assert res["res"] is True
        assert res["old"]["is_latest"] is False
        assert res["old"]["superseded_by"] == second
        assert res["new"]["supersedes"] == first
        assert res["new"]["version"] == "1.1"
        assert res["new"]["version_notes"] == "Nouveau schéma"
        versions.supersede(old_document_id=second, new_document_id=third)

        chain = versions.get_version_chain(document_id=second)
        assert [d["id"] for d in chain] == [first, second, third]
        assert [d["chain_order"] for d in chain] == [-1, 0, 1]
        assert [d["version"] for d in chain] == ["1.0", "1.1", "1.2"]

        assert versions.get_latest_version(asset_id=asset["id"])["id"] == third
        assert versions.suggest_next_version(asset_id=asset["id"]) == "1.3"

    def test_explicit_label_is_kept(self, db_engine):
        """Test that a new document with its own label keeps it."""
        asset = make_asset()
        old = add_document(db_engine, asset["id"], version="2024-03")
        new = add_document(db_engine, asset["id"], version="2024-09")
        assert versions.supersede(old_document_id=old, new_document_id=new)["new"]["version"] == "2024-09"

    def test_refusals(self, db_engine):
        """Test unknown documents, self links and documents of two assets."""
        compressor = make_asset()
        dryer = make_asset("Sécheur", "SEC-001")
        document = add_document(db_engine, compressor["id"])
        other = add_document(db_engine, dryer["id"])

        assert versions.supersede(old_document_id=document, new_document_id=str(uuid.uuid4())) == \
            {"res": False, "detail": "Document non trouvé"}
        assert versions.supersede(old_document_id=document, new_document_id=document)["res"] is False
        assert versions.supersede(old_document_id=document, new_document_id=other)["detail"] == \
            "Les deux documents doivent appartenir au même équipement"

    def test_without_documents(self, db_engine):
        """Test the first version label and an unknown chain."""
        asset = make_asset()
        assert versions.suggest_next_version(asset_id=asset["id"]) == "1.0"
        assert versions.get_latest_version(asset_id=asset["id"], file_name="manuel.pdf") is None
        assert versions.get_version_chain(document_id=str(uuid.uuid4())) is None
        assert versions.get_version_chain(document_id="not-a-uuid") is None

    def test_latest_per_file_name(self, db_engine):
        """Test that the file name narrows the latest version."""
        asset = make_asset()
        add_document(db_engine, asset["id"], file_name="manuel.pdf", version="3.2")
        add_document(db_engine, asset["id"], file_name="schema.pdf", version="7")
        assert versions.suggest_next_version(asset_id=asset["id"], file_name="manuel.pdf") == "3.3"
        assert versions.suggest_next_version(asset_id=asset["id"], file_name="schema.pdf") == "8"


class TestArchiveAndDelete:
    """Test archiving and the promotion of the previous version on delete."""

    def test_archived_documents_are_hidden(self, db_engine):
        """Test the listing, the latest version and the search results of an archived document."""
        asset = make_asset()
        document = add_document(db_engine, asset["id"], embedding=[1.0, 0.0])

        archived = versions.archive_document(document_id=document)
        assert archived["archived_at"] is not None
        assert funcs.list_documents(asset_id=asset["id"]) == []
        assert len(funcs.list_documents(asset_id=asset["id"], include_archived=True)) == 1
        assert versions.get_latest_version(asset_id=asset["id"]) is None
        with patch("opengmao.rag.smart_search.generate_embedding", return_value=[1.0, 0.0]):
            assert smart_search.smart_search(asset_id=asset["id"], query="pression",
                                             analysis={"intent": "specs"}) == []

        assert versions.unarchive_document(document_id=document)["archived_at"] is None
        assert len(funcs.list_documents(asset_id=asset["id"])) == 1
        with patch("opengmao.rag.smart_search.generate_embedding", return_value=[1.0, 0.0]):
            results = smart_search.smart_search(asset_id=asset["id"], query="pression",
                                                analysis={"intent": "specs"})
        assert len(results) == 1

    def test_unknown_document(self, db_engine):
        """Test archiving a document that does not exist."""
        assert versions.archive_document(document_id=str(uuid.uuid4())) is None
        assert versions.unarchive_document(document_id="not-a-uuid") is None

    def test_deleting_the_latest_promotes_the_previous(self, db_engine):
        """Test that the superseded version becomes the latest again."""
        asset = make_asset()
        old = add_document(db_engine, asset["id"])
        new = add_document(db_engine, asset["id"])
        versions.supersede(old_document_id=old, new_document_id=new)

        assert funcs.delete_document(document_id=new) is True

        previous = funcs.get_document(document_id=old)
        assert previous["is_latest"] is True
        assert previous["superseded_by"] is None
        assert versions.get_latest_version(asset_id=asset["id"])["id"] == old

    def test_deleting_an_old_version(self, db_engine):
        """Test that the newer version loses its link to a deleted predecessor."""
        asset = make_asset()
        old = add_document(db_engine, asset["id"])
        new = add_document(db_engine, asset["id"])
        versions.supersede(old_document_id=old, new_document_id=new)

        assert funcs.delete_document(document_id=old) is True

        remaining = funcs.get_document(document_id=new)
        assert remaining["is_latest"] is True
        assert remaining["supersedes"] is None
        chain = versions.get_version_chain(document_id=new)
        assert [(d["id"], d["chain_order"]) for d in chain] == [(new, 0)]


class TestVersionRoutes:
    """Test the version and archive routes."""

    @pytest.fixture
    def client(self, db_engine):
        app = FastAPI()
        app.include_router(ai_router.router)
        user = funcs.register_user(email="tech@plant.ma", password="secret123", organization_id=ORG)["user_details"]
        return TestClient(app, cookies={"token": create_access_token({"sub": user["id"]})})

    def test_unauthorized(self, db_engine):
        """Test the 401 body."""
        app = FastAPI()
        app.include_router(ai_router.router)
        response = TestClient(app).get(f"/api/documents/{uuid.uuid4()}/versions")
        assert response.status_code == 401
        assert response.json() == {"error": "Non autorisé"}

    def test_supersede_and_versions(self, client, db_engine):
        """Test the supersede route followed by the chain and the next label."""
        asset = make_asset()
        old = add_document(db_engine, asset["id"])
        new = add_document(db_engine, asset["id"])

        response = client.post(f"/api/documents/{old}/supersede", json={"new_document_id": new})
        assert response.status_code == 200
        assert response.json()["document"]["version"] == "1.1"

        chain = client.get(f"/api/documents/{new}/versions").json()["versions"]
        assert [d["id"] for d in chain] == [old, new]
        next_version = client.get(f"/api/assets/{asset['id']}/documents/next-version").json()
        assert next_version == {"version": "1.2"}

    def test_supersede_errors(self, client, db_engine):
        """Test the 404 and 400 statuses."""
        asset = make_asset()
        document = add_document(db_engine, asset["id"])
        unknown = client.post(f"/api/documents/{document}/supersede", json={"new_document_id": "not-a-uuid"})
        assert unknown.status_code == 404
        assert unknown.json() == {"error": "Document non trouvé"}
        itself = client.post(f"/api/documents/{document}/supersede", json={"new_document_id": document})
        assert itself.status_code == 400

    def test_archive_routes(self, client, db_engine):
        """Test archiving and restoring through the API."""
        asset = make_asset()
        document = add_document(db_engine, asset["id"])
        documents_url = f"/api/assets/{asset['id']}/documents"

        assert client.post(f"/api/documents/{document}/archive").json()["success"] is True
        assert client.get(documents_url).json() == {"documents": []}
        assert len(client.get(documents_url, params={"include_archived": True}).json()["documents"]) == 1

        restored = client.delete(f"/api/documents/{document}/archive").json()["document"]
        assert restored["archived_at"] is None
        assert client.get(f"/api/documents/{uuid.uuid4()}/versions").status_code == 404
        assert client.post(f"/api/documents/{uuid.uuid4()}/archive").status_code == 404
