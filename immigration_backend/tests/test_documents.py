"""
Document metadata API tests
"""

import pytest

from immigration_backend.db.session import get_db_session
from immigration_backend.db.models import Case, Document, DocumentStatus, DocumentType, ServiceType, User, UserRole

PDF = "application/pdf"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"


@pytest.fixture
def documents(seed):
    """Five documents by the client on their case, one by another client."""
    with get_db_session() as db:
        stranger = User(email="stranger@example.com", role=UserRole.CLIENT)
        db.add(stranger)
        db.flush()
        other_case = Case(service_type=ServiceType.TOURIST_VISA, client_id=stranger.id)
        db.add(other_case)
        db.flush()

        rows = [
            ("passport.pdf", PDF, DocumentType.PASSPORT, DocumentStatus.APPROVED),
            ("photo.jpg", "image/jpeg", DocumentType.PHOTO, DocumentStatus.PENDING),
            ("scan.png", "image/png", DocumentType.ID_CARD, DocumentStatus.REJECTED),
            ("letter.docx", DOCX, DocumentType.EMPLOYMENT_LETTER, DocumentStatus.PENDING),
            ("statement.pdf", PDF, DocumentType.BANK_STATEMENT, DocumentStatus.PENDING),
        ]
        for name, mime, doc_type, status in rows:
            db.add(Document(
                case_id=seed.case, uploaded_by_id=seed.client, file_name=name, original_name=name,
                file_path=f"https://files.example.com/{name}", mime_type=mime,
                document_type=doc_type, status=status,
            ))
        db.add(Document(
            case_id=other_case.id, uploaded_by_id=stranger.id, file_name="theirs.pdf",
            original_name="theirs.pdf", file_path="https://files.example.com/theirs.pdf",
            mime_type=PDF, document_type=DocumentType.PASSPORT,
        ))
        stranger_id = stranger.id
        other_case_id = other_case.id

    return {"stranger": stranger_id, "other_case": other_case_id}


def _list(client, headers, **params):
    return client.get("/api/documents", params=params, headers=headers)


def _names(res):
    return sorted(d["fileName"] for d in res.json()["data"]["documents"])


def test_client_sees_only_own_uploads(client, seed, auth_headers, documents):
    res = _list(client, auth_headers(seed.client))

    assert res.status_code == 200
    assert len(res.json()["data"]["documents"]) == 5
    assert "theirs.pdf" not in _names(res)


def test_staff_sees_all_documents(client, seed, auth_headers, documents):
    res = _list(client, auth_headers(seed.admin))
    assert res.json()["data"]["pagination"]["total"] == 6


@pytest.mark.parametrize("params,expected", [
    ({"type": "PASSPORT"}, ["passport.pdf"]),
    ({"extensionType": "PDF"}, ["passport.pdf", "statement.pdf"]),
    ({"extensionType": "IMAGE"}, ["photo.jpg", "scan.png"]),
    ({"extensionType": "DOCX"}, ["letter.docx"]),
    ({"extensionType": "XLS"}, []),
    ({"status": "PENDING"}, ["letter.docx", "photo.jpg", "statement.pdf"]),
    ({"status": "ALL", "extensionType": "ALL"}, ["letter.docx", "passport.pdf", "photo.jpg", "scan.png", "statement.pdf"]),
    ({"extensionType": "PDF", "status": "APPROVED"}, ["passport.pdf"]),
])
def test_filters(client, seed, auth_headers, documents, params, expected):
    res = _list(client, auth_headers(seed.client), **params)

    assert res.status_code == 200
    assert _names(res) == expected


@pytest.mark.parametrize("params", [
    {"type": "SPACESHIP"},
    {"extensionType": "ZIP"},
    {"status": "LOST"},
])
def test_invalid_filters_are_ignored(client, seed, auth_headers, documents, params):
    res = _list(client, auth_headers(seed.client), **params)

    assert res.status_code == 200
    assert len(res.json()["data"]["documents"]) == 5


def test_case_filter(client, seed, auth_headers, documents):
    res = _list(client, auth_headers(seed.admin), caseId=documents["other_case"])
    assert _names(res) == ["theirs.pdf"]


@pytest.mark.parametrize("limit", ["0", "-3", "abc"])
def test_limit_must_be_positive(client, seed, auth_headers, limit):
    res = _list(client, auth_headers(seed.client), limit=limit)

    assert res.status_code == 400
    assert res.json()["error"] == "Limit must be a positive integer"


def test_limit_is_clamped(client, seed, auth_headers, documents):
    res = _list(client, auth_headers(seed.client), limit="500")
    assert res.json()["data"]["pagination"]["limit"] == 100


def test_limit_ignores_trailing_characters(client, seed, auth_headers, documents):
    res = _list(client, auth_headers(seed.client), limit="3abc")

    assert res.status_code == 200
    assert res.json()["data"]["pagination"]["limit"] == 3
    assert len(res.json()["data"]["documents"]) == 3


def test_pagination(client, seed, auth_headers, documents):
    res = _list(client, auth_headers(seed.client), limit="2", page="3")

    data = res.json()["data"]
    assert data["pagination"] == {"page": 3, "limit": 2, "total": 5, "totalPages": 3}
    assert len(data["documents"]) == 1


def test_list_includes_case_and_uploader(client, seed, auth_headers, documents):
    res = _list(client, auth_headers(seed.client), type="PASSPORT")

    [doc] = res.json()["data"]["documents"]
    assert doc["case"]["referenceNumber"] == seed.case_reference
    assert doc["uploadedBy"] == {"id": seed.client, "firstName": "Chris", "lastName": "Client"}


def _create(client, headers, **overrides):
    body = {
        "fileName": "visa-form.pdf",
        "filePath": "https://files.example.com/visa-form.pdf",
        "fileSize": 2048,
        "mimeType": PDF,
        "documentType": "OTHER",
    }
    body.update(overrides)
    return client.post("/api/documents", json=body, headers=headers)


def test_client_attaches_document_to_own_case(client, seed, auth_headers):
    res = _create(client, auth_headers(seed.client), caseId=seed.case)

    assert res.status_code == 201
    doc = res.json()["data"]["document"]
    assert doc["originalName"] == "visa-form.pdf"
    assert doc["status"] == "PENDING"
    assert doc["fileSize"] == 2048

    with get_db_session() as db:
        assert db.query(Document).filter(Document.uploaded_by_id == seed.client).count() == 1


@pytest.mark.parametrize("missing", ["fileName", "filePath", "mimeType", "documentType"])
def test_create_requires_fields(client, seed, auth_headers, missing):
    res = _create(client, auth_headers(seed.client), caseId=seed.case, **{missing: None})
    assert res.status_code == 400


def test_create_requires_case_id(client, seed, auth_headers):
    assert _create(client, auth_headers(seed.client)).status_code == 400


def test_create_unknown_case(client, seed, auth_headers):
    assert _create(client, auth_headers(seed.client), caseId="nope").status_code == 404


def test_client_cannot_attach_to_someone_elses_case(client, seed, auth_headers, documents):
    res = _create(client, auth_headers(seed.client), caseId=documents["other_case"])
    assert res.status_code == 403


def test_agent_can_attach_to_any_case(client, seed, auth_headers, documents):
    res = _create(client, auth_headers(seed.other_agent), caseId=documents["other_case"])
    assert res.status_code == 201
