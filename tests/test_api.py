from __future__ import annotations

PROJECT_ID = "proj-1"
NUMBERING_URL = f"/api/v1/projects/{PROJECT_ID}/numbering"
DOCUMENTS_URL = f"/api/v1/projects/{PROJECT_ID}/documents"
HEADERS = {"X-User-Email": "Engineer@Example.com"}


def _init_numbering(client):
    response = client.post(NUMBERING_URL, json={"project_code": "PRJ"}, headers=HEADERS)
    assert response.status_code == 201
    return response.json()


def _create_document(client, title, discipline_code="01", **extra):
    response = client.post(
        DOCUMENTS_URL,
        json={"discipline_code": discipline_code, "document_title": title, **extra},
        headers=HEADERS,
    )
    assert response.status_code == 201, response.text
    return response.json()


def _set_status(client, document_id, status, revision=None):
    return client.patch(
        f"{DOCUMENTS_URL}/{document_id}/status",
        json={"status": status, "revision": revision},
        headers=HEADERS,
    )


def test_health(client):
    assert client.get("/health").json() == {"status": "up"}


def test_numbering_lifecycle(client, db_session):
    missing = client.get(NUMBERING_URL)
    assert missing.status_code == 409
    assert missing.json()["detail"]["code"] == "NUMBERING_NOT_INITIALIZED"

    config = _init_numbering(client)
    assert config["project_code"] == "PRJ"
    assert config["separator"] == "-"
    assert config["created_by"] == "engineer@example.com"
    assert len(config["disciplines"]) == 11

    again = client.post(NUMBERING_URL, json={"project_code": "PRJ"})
    assert again.status_code == 409
    assert again.json()["detail"]["code"] == "NUMBERING_EXISTS"

    preview = client.get(f"{NUMBERING_URL}/next", params={"discipline_code": "01", "sub_code": "A"})
    assert preview.json() == {"counter_key": "01-A", "next_sequence": 1, "preview_number": "PRJ-01-A-001"}

    generated = client.post(f"{NUMBERING_URL}/generate", json={"discipline_code": "01", "sub_code": "A"})
    assert generated.status_code == 201
    assert generated.json() == {"document_number": "PRJ-01-A-001"}
    assert client.get(f"{NUMBERING_URL}/next", params={"discipline_code": "01", "sub_code": "A"}).json()[
        "next_sequence"
    ] == 2


def test_disciplines_endpoints(client, db_session):
    _init_numbering(client)
    added = client.post(
        f"{NUMBERING_URL}/disciplines",
        json={"code": "11", "name": "Commissioning", "sort_order": 11},
    )
    assert added.status_code == 201
    duplicate = client.post(f"{NUMBERING_URL}/disciplines", json={"code": "11", "name": "Again"})
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["code"] == "DISCIPLINE_EXISTS"
    assert duplicate.json()["detail"]["discipline_code"] == "11"

    codes = [d["code"] for d in client.get(f"{NUMBERING_URL}/disciplines").json()]
    assert codes[0] == "00"
    assert codes[-1] == "11"


def test_validate_and_parse_endpoints(client):
    valid = client.post(
        f"{NUMBERING_URL}/validate",
        json={
            "document_number": "PRJ-001-01-A-001",
            "format": {"project_code": "PRJ-001", "discipline_code": "01"},
        },
    )
    assert valid.json() == {"document_number": "PRJ-001-01-A-001", "is_valid": True}

    parsed = client.get(f"{NUMBERING_URL}/parse", params={"document_number": "PRJ-01-A-001"})
    assert parsed.json() == {
        "project_code": "PRJ",
        "discipline_code": "01",
        "sequence": "001",
        "sub_code": "A",
    }
    bad = client.get(f"{NUMBERING_URL}/parse", params={"document_number": "PRJ-01"})
    assert bad.status_code == 400
    assert bad.json()["detail"]["code"] == "INVALID_DOCUMENT_NUMBER"


def test_document_register_flow(client, db_session):
    _init_numbering(client)
    design = _create_document(client, "Design basis")
    pfd = _create_document(client, "Process flow diagram")
    assert design["document_number"] == "PRJ-01-001"
    assert pfd["document_number"] == "PRJ-01-002"
    assert design["created_by"] == "engineer@example.com"

    link = client.post(
        f"{DOCUMENTS_URL}/{pfd['id']}/links",
        json={"target_document_id": design["id"], "link_type": "PREREQUISITE"},
    )
    assert link.status_code == 201
    assert link.json()["master_document_id"] == design["id"]

    cycle = client.post(
        f"{DOCUMENTS_URL}/{design['id']}/links",
        json={"target_document_id": pfd["id"], "link_type": "PREREQUISITE"},
    )
    assert cycle.status_code == 409
    assert cycle.json()["detail"]["code"] == "CIRCULAR_DEPENDENCY"

    gate = client.get(f"{DOCUMENTS_URL}/{pfd['id']}/predecessor-check").json()
    assert gate["all_completed"] is False
    assert [p["master_document_id"] for p in gate["pending_predecessors"]] == [design["id"]]

    skipped = _set_status(client, design["id"], "APPROVED")
    assert skipped.status_code == 409
    assert skipped.json()["detail"]["code"] == "INVALID_STATUS_TRANSITION"

    for status in ("IN_PROGRESS", "SUBMITTED", "UNDER_REVIEW", "APPROVED"):
        assert _set_status(client, design["id"], status).status_code == 200

    refreshed = client.get(f"{DOCUMENTS_URL}/{pfd['id']}").json()
    assert refreshed["predecessors"][0]["status"] == "APPROVED"
    assert client.get(f"{DOCUMENTS_URL}/{pfd['id']}/predecessor-check").json()["all_completed"] is True

    ready = client.get(f"{DOCUMENTS_URL}/{design['id']}/ready-successors").json()
    assert [doc["id"] for doc in ready] == [pfd["id"]]

    stats = client.get(f"{DOCUMENTS_URL}/statistics").json()
    assert stats["total"] == 2
    assert stats["by_status"] == {"APPROVED": 1, "DRAFT": 1}

    assert client.get(f"{DOCUMENTS_URL}/link-audit").json() == []


def test_link_removal_and_propagation(client, db_session):
    _init_numbering(client)
    a = _create_document(client, "A")
    b = _create_document(client, "B", discipline_code="02")
    client.post(
        f"{DOCUMENTS_URL}/{a['id']}/links",
        json={"target_document_id": b["id"], "link_type": "RELATED"},
    )

    duplicate = client.post(
        f"{DOCUMENTS_URL}/{b['id']}/links",
        json={"target_document_id": a["id"], "link_type": "RELATED"},
    )
    assert duplicate.status_code == 409
    assert duplicate.json()["detail"]["code"] == "LINK_EXISTS"

    propagated = client.post(
        f"{DOCUMENTS_URL}/{a['id']}/links/propagate",
        json={"status": "in_progress", "revision": "R1"},
    )
    assert propagated.json() == {"document_id": a["id"], "updated_documents": 1}

    removed = client.delete(
        f"{DOCUMENTS_URL}/{a['id']}/links/{b['id']}", params={"link_type": "RELATED"}
    )
    assert removed.status_code == 204
    again = client.delete(
        f"{DOCUMENTS_URL}/{a['id']}/links/{b['id']}", params={"link_type": "RELATED"}
    )
    assert again.status_code == 404
    assert again.json()["detail"]["code"] == "NOT_FOUND"


def test_soft_delete_and_listing(client, db_session):
    _init_numbering(client)
    keep = _create_document(client, "Keep", assigned_to=["a@example.com"])
    drop = _create_document(client, "Drop")

    assert client.delete(f"{DOCUMENTS_URL}/{drop['id']}", headers=HEADERS).status_code == 204
    assert client.get(f"{DOCUMENTS_URL}/{drop['id']}").status_code == 404

    listed = client.get(DOCUMENTS_URL).json()
    assert [d["id"] for d in listed] == [keep["id"]]
    deleted = client.get(DOCUMENTS_URL, params={"only_deleted": True}).json()
    assert [d["id"] for d in deleted] == [drop["id"]]
    assigned = client.get(DOCUMENTS_URL, params={"assigned_to": "a@example.com"}).json()
    assert [d["id"] for d in assigned] == [keep["id"]]

    assert client.get(DOCUMENTS_URL, params={"status": "SHIPPED"}).status_code == 422


def test_create_document_requires_numbering(client, db_session):
    response = client.post(
        DOCUMENTS_URL,
        json={"discipline_code": "01", "document_title": "Orphan"},
    )
    assert response.status_code == 409
    assert response.json()["detail"]["code"] == "NUMBERING_NOT_INITIALIZED"
