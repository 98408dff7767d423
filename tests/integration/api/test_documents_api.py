"""
Integration Tests for Documents API
Tests for docshare/api/routes/documents.py endpoints
"""

import uuid

import pytest
from httpx import AsyncClient


async def upload(client: AsyncClient, user: dict, title: str = "Test Document", content: bytes = b"hello",
                 filename: str = "notes.txt", description: str = None):
    data = {"title": title}
    if description is not None:
        data["description"] = description
    return await client.post(
        "/api/documents",
        data=data,
        files={"file": (filename, content, "text/plain")},
        headers=user["headers"],
    )


async def share(client: AsyncClient, owner: dict, document_id: str, email: str, level: str = None):
    body = {"email": email}
    if level is not None:
        body["accessLevel"] = level
    return await client.post(f"/api/documents/{document_id}/share", json=body, headers=owner["headers"])


@pytest.mark.integration
class TestDocumentUpload:

    @pytest.mark.asyncio
    async def test_upload_returns_201(self, client: AsyncClient, register_and_login, blob_store):
        owner = await register_and_login("Owner")

        response = await upload(client, owner, title="Plan", description="Roadmap", filename="my plan.txt")

        assert response.status_code == 201
        result = response.json()
        assert result["message"] == "Document uploaded successfully"
        document = result["document"]
        assert document["title"] == "Plan"
        assert document["description"] == "Roadmap"
        assert document["access_level"] == "owner"
        assert document["owner_id"] == owner["id"]
        assert document["owner"] == {"full_name": "Owner", "email": owner["email"]}
        assert document["file_url"].endswith("_my_plan.txt")
        assert document["original_filename"] == "my plan.txt"
        assert blob_store.keys() == [document["file_url"]]

    @pytest.mark.asyncio
    async def test_upload_without_title_returns_400(self, client: AsyncClient, register_and_login):
        owner = await register_and_login()

        response = await client.post(
            "/api/documents",
            files={"file": ("a.txt", b"x", "text/plain")},
            headers=owner["headers"],
        )

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "Title is required"

    @pytest.mark.asyncio
    async def test_upload_without_file_returns_400(self, client: AsyncClient, register_and_login):
        owner = await register_and_login()

        response = await client.post("/api/documents", data={"title": "No file"}, headers=owner["headers"])

        assert response.status_code == 400
        assert response.json()["error"]["message"] == "File is required"

    @pytest.mark.asyncio
    async def test_upload_11_mib_returns_400_and_stores_nothing(
        self, client: AsyncClient, register_and_login, blob_store
    ):
        owner = await register_and_login()

        response = await upload(client, owner, title="Huge", content=b"\0" * (11 * 1024 * 1024))

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "payload_too_large"
        assert blob_store.keys() == []

        listing = await client.get("/api/documents", headers=owner["headers"])
        assert listing.json()["owned"] == []

    @pytest.mark.asyncio
    async def test_upload_requires_auth(self, client: AsyncClient):
        response = await client.post(
            "/api/documents",
            data={"title": "x"},
            files={"file": ("a.txt", b"x", "text/plain")},
        )
        assert response.status_code == 401


@pytest.mark.integration
class TestDocumentRead:

    @pytest.mark.asyncio
    async def test_list_owned_and_shared(self, client: AsyncClient, register_and_login):
        alice = await register_and_login("Alice")
        bob = await register_and_login("Bob")
        own_id = (await upload(client, alice, title="Alice doc")).json()["document"]["id"]
        bob_id = (await upload(client, bob, title="Bob doc")).json()["document"]["id"]
        await share(client, bob, bob_id, alice["email"], "edit")

        response = await client.get("/api/documents", headers=alice["headers"])

        assert response.status_code == 200
        result = response.json()
        assert [d["id"] for d in result["owned"]] == [own_id]
        assert [d["id"] for d in result["shared"]] == [bob_id]
        assert result["shared"][0]["access_level"] == "edit"
        assert result["shared"][0]["owner"]["full_name"] == "Bob"
        assert "shared_with" not in result["shared"][0]

    @pytest.mark.asyncio
    async def test_owner_sees_shared_with(self, client: AsyncClient, register_and_login):
        owner = await register_and_login("Owner")
        reader = await register_and_login("Reader")
        doc_id = (await upload(client, owner)).json()["document"]["id"]
        await share(client, owner, doc_id, reader["email"])

        response = await client.get(f"/api/documents/{doc_id}", headers=owner["headers"])

        assert response.status_code == 200
        shared_with = response.json()["shared_with"]
        assert shared_with == [
            {"id": reader["id"], "full_name": "Reader", "email": reader["email"], "access_level": "read"}
        ]

    @pytest.mark.asyncio
    async def test_grantee_does_not_see_shared_with(self, client: AsyncClient, register_and_login):
        owner = await register_and_login("Owner")
        reader = await register_and_login("Reader")
        doc_id = (await upload(client, owner)).json()["document"]["id"]
        await share(client, owner, doc_id, reader["email"])

        response = await client.get(f"/api/documents/{doc_id}", headers=reader["headers"])

        assert response.status_code == 200
        assert response.json()["access_level"] == "read"
        assert "shared_with" not in response.json()

    @pytest.mark.asyncio
    async def test_missing_document_returns_404(self, client: AsyncClient, register_and_login):
        user = await register_and_login()

        response = await client.get(f"/api/documents/{uuid.uuid4()}", headers=user["headers"])

        assert response.status_code == 404
        assert response.json()["error"]["code"] == "not_found"

    @pytest.mark.asyncio
    async def test_malformed_id_returns_400(self, client: AsyncClient, register_and_login):
        user = await register_and_login()

        response = await client.get("/api/documents/not-a-uuid", headers=user["headers"])

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "validation_error"


@pytest.mark.integration
class TestStrangerIsForbidden:
    """A user who is neither owner nor grantee gets 403 everywhere"""

    @pytest.mark.asyncio
    async def test_all_document_endpoints(self, client: AsyncClient, register_and_login):
        owner = await register_and_login("Owner")
        grantee = await register_and_login("Grantee")
        stranger = await register_and_login("Stranger")
        doc_id = (await upload(client, owner)).json()["document"]["id"]
        await share(client, owner, doc_id, grantee["email"])
        headers = stranger["headers"]

        responses = [
            await client.get(f"/api/documents/{doc_id}", headers=headers),
            await client.get(f"/api/documents/{doc_id}/download", headers=headers),
            await client.patch(f"/api/documents/{doc_id}", json={"title": "x"}, headers=headers),
            await client.post(f"/api/documents/{doc_id}/share", json={"email": grantee["email"]}, headers=headers),
            await client.delete(f"/api/documents/{doc_id}/share/{grantee['id']}", headers=headers),
            await client.delete(f"/api/documents/{doc_id}", headers=headers),
        ]

        for response in responses:
            assert response.status_code == 403, response.request.url
            assert response.json()["error"]["code"] == "authorization_error"


@pytest.mark.integration
class TestSharing:

    @pytest.mark.asyncio
    async def test_share_download_revoke_scenario(self, client: AsyncClient, register_and_login):
        owner = await register_and_login("Owner")
        reader = await register_and_login("Reader")
        doc_id = (await upload(client, owner)).json()["document"]["id"]

        # Not shared yet
        response = await client.get(f"/api/documents/{doc_id}/download", headers=reader["headers"])
        assert response.status_code == 403

        response = await share(client, owner, doc_id, reader["email"])
        assert response.status_code == 200
        assert response.json()["message"] == "Document successfully shared with Reader"
        assert response.json()["access"]["access_level"] == "read"
        assert response.json()["access"]["user_id"] == reader["id"]

        response = await client.get(f"/api/documents/{doc_id}/download", headers=reader["headers"])
        assert response.status_code == 200
        assert response.json()["downloadUrl"].startswith("memory://documents/")

        response = await client.delete(f"/api/documents/{doc_id}/share/{reader['id']}", headers=owner["headers"])
        assert response.status_code == 200
        assert response.json()["message"] == "Access removed for Reader"

        response = await client.get(f"/api/documents/{doc_id}/download", headers=reader["headers"])
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_reshare_updates_level(self, client: AsyncClient, register_and_login):
        owner = await register_and_login("Owner")
        grantee = await register_and_login("Grantee")
        doc_id = (await upload(client, owner)).json()["document"]["id"]

        first = await share(client, owner, doc_id, grantee["email"], "read")
        second = await share(client, owner, doc_id, grantee["email"], "edit")

        assert first.json()["access"]["id"] == second.json()["access"]["id"]
        detail = await client.get(f"/api/documents/{doc_id}", headers=owner["headers"])
        assert [entry["access_level"] for entry in detail.json()["shared_with"]] == ["edit"]

    @pytest.mark.asyncio
    async def test_share_with_self_returns_400(self, client: AsyncClient, register_and_login):
        owner = await register_and_login()
        doc_id = (await upload(client, owner)).json()["document"]["id"]

        response = await share(client, owner, doc_id, owner["email"])

        assert response.status_code == 400
        assert response.json()["error"]["code"] == "invalid_operation"
        detail = await client.get(f"/api/documents/{doc_id}", headers=owner["headers"])
        assert detail.json()["shared_with"] == []

    @pytest.mark.asyncio
    async def test_share_with_unknown_email_returns_404(self, client: AsyncClient, register_and_login):
        owner = await register_and_login()
        doc_id = (await upload(client, owner)).json()["document"]["id"]

        response = await share(client, owner, doc_id, "nobody@example.com")

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "User not found"

    @pytest.mark.asyncio
    async def test_share_invalid_level_returns_400(self, client: AsyncClient, register_and_login):
        owner = await register_and_login()
        grantee = await register_and_login("Grantee")
        doc_id = (await upload(client, owner)).json()["document"]["id"]

        response = await share(client, owner, doc_id, grantee["email"], "admin")
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_revoke_missing_grant_succeeds(self, client: AsyncClient, register_and_login):
        owner = await register_and_login()
        doc_id = (await upload(client, owner)).json()["document"]["id"]

        response = await client.delete(f"/api/documents/{doc_id}/share/{uuid.uuid4()}", headers=owner["headers"])

        assert response.status_code == 200
        assert response.json()["message"] == "Access removed successfully"


@pytest.mark.integration
class TestDocumentUpdate:

    @pytest.mark.asyncio
    async def test_edit_grantee_can_patch(self, client: AsyncClient, register_and_login):
        owner = await register_and_login("Owner")
        editor = await register_and_login("Editor")
        doc_id = (await upload(client, owner)).json()["document"]["id"]
        await share(client, owner, doc_id, editor["email"], "edit")

        response = await client.patch(
            f"/api/documents/{doc_id}",
            json={"title": "Renamed", "description": "Edited"},
            headers=editor["headers"],
        )

        assert response.status_code == 200
        assert response.json()["message"] == "Document updated successfully"
        assert response.json()["document"]["title"] == "Renamed"
        assert response.json()["document"]["description"] == "Edited"

    @pytest.mark.asyncio
    async def test_read_grantee_cannot_patch(self, client: AsyncClient, register_and_login):
        owner = await register_and_login("Owner")
        reader = await register_and_login("Reader")
        doc_id = (await upload(client, owner)).json()["document"]["id"]
        await share(client, owner, doc_id, reader["email"], "read")

        response = await client.patch(f"/api/documents/{doc_id}", json={"title": "x"}, headers=reader["headers"])
        assert response.status_code == 403

    @pytest.mark.asyncio
    async def test_null_description_clears_and_omitted_title_is_kept(self, client: AsyncClient, register_and_login):
        owner = await register_and_login()
        doc_id = (await upload(client, owner, title="Plan", description="Roadmap")).json()["document"]["id"]

        response = await client.patch(
            f"/api/documents/{doc_id}",
            json={"description": None},
            headers=owner["headers"],
        )

        assert response.status_code == 200
        assert response.json()["document"]["title"] == "Plan"
        assert response.json()["document"]["description"] is None

    @pytest.mark.asyncio
    async def test_title_only_patch_keeps_description(self, client: AsyncClient, register_and_login):
        owner = await register_and_login()
        doc_id = (await upload(client, owner, title="Plan", description="Roadmap")).json()["document"]["id"]

        response = await client.patch(f"/api/documents/{doc_id}", json={"title": "t2"}, headers=owner["headers"])

        assert response.status_code == 200
        assert response.json()["document"]["title"] == "t2"
        assert response.json()["document"]["description"] == "Roadmap"

    @pytest.mark.asyncio
    async def test_null_title_returns_400(self, client: AsyncClient, register_and_login):
        owner = await register_and_login()
        doc_id = (await upload(client, owner)).json()["document"]["id"]

        response = await client.patch(f"/api/documents/{doc_id}", json={"title": None}, headers=owner["headers"])
        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_empty_patch_returns_400(self, client: AsyncClient, register_and_login):
        owner = await register_and_login()
        doc_id = (await upload(client, owner)).json()["document"]["id"]

        response = await client.patch(f"/api/documents/{doc_id}", json={}, headers=owner["headers"])
        assert response.status_code == 400


@pytest.mark.integration
class TestDocumentDelete:

    @pytest.mark.asyncio
    async def test_delete_removes_everything(self, client: AsyncClient, register_and_login, blob_store):
        owner = await register_and_login("Owner")
        reader = await register_and_login("Reader")
        doc_id = (await upload(client, owner)).json()["document"]["id"]
        await share(client, owner, doc_id, reader["email"])

        response = await client.delete(f"/api/documents/{doc_id}", headers=owner["headers"])

        assert response.status_code == 200
        assert response.json()["message"] == "Document deleted successfully"
        assert blob_store.keys() == []
        for user in (owner, reader):
            response = await client.get(f"/api/documents/{doc_id}", headers=user["headers"])
            assert response.status_code == 404
        listing = await client.get("/api/documents", headers=reader["headers"])
        assert listing.json()["shared"] == []

    @pytest.mark.asyncio
    async def test_delete_with_missing_blob_succeeds(self, client: AsyncClient, register_and_login, blob_store):
        owner = await register_and_login()
        document = (await upload(client, owner)).json()["document"]
        await blob_store.delete(document["file_url"])

        response = await client.delete(f"/api/documents/{document['id']}", headers=owner["headers"])

        assert response.status_code == 200
        response = await client.get(f"/api/documents/{document['id']}", headers=owner["headers"])
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_grantee_cannot_delete(self, client: AsyncClient, register_and_login):
        owner = await register_and_login()
        editor = await register_and_login("Editor")
        doc_id = (await upload(client, owner)).json()["document"]["id"]
        await share(client, owner, doc_id, editor["email"], "edit")

        response = await client.delete(f"/api/documents/{doc_id}", headers=editor["headers"])

        assert response.status_code == 403
        assert (await client.get(f"/api/documents/{doc_id}", headers=owner["headers"])).status_code == 200


@pytest.mark.integration
class TestReportScenario:
    """Upload, share read, download, revoke"""

    @pytest.mark.asyncio
    async def test_q1_report(self, client: AsyncClient, register_and_login):
        user_a = await register_and_login("User A")
        user_b = await register_and_login("User B")

        response = await client.post(
            "/api/documents",
            data={"title": "Q1 Report"},
            files={"file": ("report.pdf", b"%PDF-1.4\n", "application/pdf")},
            headers=user_a["headers"],
        )
        assert response.status_code == 201
        document = response.json()["document"]
        assert document["owner_id"] == user_a["id"]
        assert document["access_level"] == "owner"

        response = await share(client, user_a, document["id"], user_b["email"], "read")
        assert response.status_code == 200

        listing = (await client.get("/api/documents", headers=user_b["headers"])).json()
        assert [(d["id"], d["access_level"]) for d in listing["shared"]] == [(document["id"], "read")]

        response = await client.get(f"/api/documents/{document['id']}/download", headers=user_b["headers"])
        assert response.status_code == 200
        assert response.json()["downloadUrl"]

        response = await client.delete(
            f"/api/documents/{document['id']}/share/{user_b['id']}", headers=user_a["headers"]
        )
        assert response.status_code == 200

        response = await client.get(f"/api/documents/{document['id']}", headers=user_b["headers"])
        assert response.status_code == 403
