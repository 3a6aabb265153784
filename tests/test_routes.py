"""Tests for API routes."""

from datetime import UTC, datetime

from fastapi.testclient import TestClient

from app.core.errors import StorageAuthError
from app.models import PhotoStatus

from conftest import OTHER_USER_ID


def upload(client: TestClient, *names: str, content_type: str = "image/jpeg"):
    files = [("photos", (name, b"jpeg-bytes", content_type)) for name in names]
    return client.post("/photos/upload", files=files)


class TestHealthEndpoint:
    """Tests for the health check endpoint."""

    def test_health_check(self, client: TestClient):
        """Test the health endpoint returns OK."""
        response = client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"


class TestIdentity:
    """Tests for caller identity."""

    def test_missing_user_header(self, client: TestClient):
        """Test requests without X-User-Id are rejected."""
        response = client.get("/photos/unsorted", headers={"X-User-Id": ""})
        assert response.status_code == 401
        assert response.json() == {"error": "Missing user identity"}


class TestDriveRoutes:
    """Tests for connecting Google Drive."""

    def test_status_not_connected(self, client: TestClient):
        """Test status for a user who never connected."""
        response = client.get("/photos/drive-status")
        assert response.status_code == 200
        assert response.json() == {"connected": False, "valid": False}

    def test_connect_returns_auth_url(self, client: TestClient):
        """Test the consent URL is returned."""
        response = client.post("/photos/connect-drive")
        assert response.status_code == 200
        assert response.json()["auth_url"].startswith("https://accounts.google.com/")

    def test_callback_stores_tokens(self, client: TestClient, container):
        """Test the callback exchanges the code and reports a valid connection."""
        response = client.post("/photos/drive-callback", json={"code": "abc"})
        assert response.status_code == 200
        assert response.json()["connected"] is True
        assert container.token_cache.load("user-1").access_token == "access-abc"

        status = client.get("/photos/drive-status").json()
        assert status["connected"] is True
        assert status["valid"] is True
        assert status["expires_at"] is not None

    def test_callback_with_rejected_code(self, client: TestClient):
        """Test a rejected code asks the user to reconnect."""
        response = client.post("/photos/drive-callback", json={"code": "bad-code"})
        assert response.status_code == 401
        assert "Failed to connect Google Drive" in response.json()["error"]

    def test_status_reports_failed_refresh(self, client: TestClient, container, oauth):
        """Test a failed refresh shows as an invalid connection with the reason."""
        container.token_cache.save("user-1", {"access_token": "a", "refresh_token": "r", "expiry": 0})
        oauth.fail_refresh = True

        data = client.get("/photos/drive-status").json()

        assert data["connected"] is True
        assert data["valid"] is False
        assert "reconnect" in data["error"]

    def test_disconnect(self, client: TestClient, connected_user, container):
        """Test disconnecting forgets the tokens."""
        response = client.post("/photos/disconnect-drive")
        assert response.status_code == 200
        assert container.token_cache.has_tokens(connected_user) is False

    def test_usage(self, client: TestClient, connected_user):
        """Test Drive usage is reported in bytes."""
        upload(client, "a.jpg")
        assert client.get("/photos/drive-usage").json() == {"used": 10, "total": 1000}


class TestPhotoRoutes:
    """Tests for photo routes."""

    def test_not_connected(self, client: TestClient):
        """Test photo routes ask users without Drive to connect first."""
        response = client.get("/photos/unsorted")
        assert response.status_code == 400
        assert "Google Drive not connected" in response.json()["error"]

    def test_upload_and_list_unsorted(self, client: TestClient, connected_user):
        """Test uploaded photos appear as unsorted."""
        response = upload(client, "a.jpg", "b.png")
        assert response.status_code == 200
        assert len(response.json()["photos"]) == 2

        unsorted = client.get("/photos/unsorted").json()["data"]
        assert {photo["status"] for photo in unsorted} == {"unsorted"}
        assert len(unsorted) == 2

    def test_upload_rejects_non_images(self, client: TestClient, connected_user):
        """Test only image files are accepted."""
        response = upload(client, "notes.txt", content_type="text/plain")
        assert response.status_code == 400
        assert "error" in response.json()

    def test_upload_rejects_too_many_files(self, client: TestClient, connected_user, container):
        """Test the per-request file limit."""
        names = [f"{i}.jpg" for i in range(container.settings.max_upload_files + 1)]
        assert upload(client, *names).status_code == 400

    def test_upload_storage_failure(self, client: TestClient, connected_user, storage):
        """Test a provider failure is reported as a bad gateway naming the file."""
        storage.fail_uploads.add("b.jpg")
        response = upload(client, "a.jpg", "b.jpg")
        assert response.status_code == 502
        assert "b.jpg" in response.json()["error"]

    def test_upload_auth_failure(self, client: TestClient, connected_user, storage, monkeypatch):
        """Test rejected Drive credentials ask the user to reconnect."""

        def reject(*args, **kwargs):
            raise StorageAuthError()

        monkeypatch.setattr(storage, "upload", reject)
        assert upload(client, "a.jpg").status_code == 401

    def test_drive_listing(self, client: TestClient, connected_user):
        """Test the Drive listing exposes public URLs."""
        upload(client, "a.jpg")
        photos = client.get("/photos").json()
        assert len(photos) == 1
        assert photos[0]["public_url"].startswith("https://drive.google.com/uc?id=")

    def test_move_and_library_grouping(self, client: TestClient, connected_user, make_photo):
        """Test moving to the library and reading it grouped by date."""
        photo = make_photo("a.jpg", created_time=datetime(2024, 3, 9, 12, 0, tzinfo=UTC))

        response = client.post("/photos/move-to-library", json={"photo_ids": [photo.photo_id]})
        assert response.json()["moved"] == 1

        library = client.get("/photos/library").json()["data"]
        assert list(library) == ["2024"]
        assert library["2024"]["03"]["09"][0]["photo_id"] == photo.photo_id

        response = client.post("/photos/move-to-unsorted", json={"photo_ids": [photo.photo_id]})
        assert response.json()["moved"] == 1

    def test_move_requires_ids(self, client: TestClient, connected_user):
        """Test an empty id list is rejected."""
        response = client.post("/photos/move-to-library", json={"photo_ids": []})
        assert response.status_code == 422

    def test_delete(self, client: TestClient, connected_user):
        """Test deleting a photo by id."""
        [photo] = upload(client, "a.jpg").json()["photos"]

        assert client.post(f"/photos/delete/{photo['photo_id']}").status_code == 200

        response = client.post(f"/photos/delete/{photo['photo_id']}")
        assert response.status_code == 404
        assert response.json() == {"error": "Photo not found"}

    def test_delete_by_url(self, client: TestClient, connected_user):
        """Test deleting a photo by its public URL."""
        [photo] = upload(client, "a.jpg").json()["photos"]

        response = client.post("/photos/delete-by-url", json={"photo_url": photo["photo_url"]})
        assert response.status_code == 200

    def test_delete_by_invalid_url(self, client: TestClient, connected_user):
        """Test a URL without file id is a bad request."""
        response = client.post("/photos/delete-by-url", json={"photo_url": "https://example.com/x"})
        assert response.status_code == 400
        assert response.json()["error"] == "Invalid Google Drive URL"

    def test_delete_by_url_not_connected(self, client: TestClient):
        """Test users without Drive are asked to connect even for a malformed URL."""
        response = client.post("/photos/delete-by-url", json={"photo_url": "https://example.com/x"})
        assert response.status_code == 400
        assert "Google Drive not connected" in response.json()["error"]

    def test_batch_delete(self, client: TestClient, connected_user):
        """Test batch delete reports per-item results."""
        [photo] = upload(client, "a.jpg").json()["photos"]

        response = client.post(
            "/photos/batch-delete", json={"photo_names": [photo["photo_name"], "does-not-exist"]}
        )

        assert response.status_code == 200
        assert response.json()["results"] == {
            "success": [photo["photo_id"]],
            "failed": ["does-not-exist"],
        }

    def test_reconcile(self, client: TestClient, connected_user):
        """Test the reconcile endpoint reports its repairs."""
        response = client.post("/photos/reconcile")
        assert response.json() == {"adopted": 0, "removed": 0}


class TestAlbumRoutes:
    """Tests for album and category routes."""

    def test_album_lifecycle(self, client: TestClient, connected_user, make_photo):
        """Test creating an album, adding a photo and removing it again."""
        photo = make_photo("a.jpg", size=2048)
        category = client.post("/categories", json={"name": "Travel"}).json()["data"]

        response = client.post(
            "/albums",
            json={"title": "Trip", "hexcolor": "#00FF00", "year": 2024, "category_id": category["id"]},
        )
        assert response.status_code == 201
        album = response.json()["data"]
        assert album["category"]["name"] == "Travel"

        response = client.post(f"/albums/{album['id']}/photos", json={"photo_name": photo.photo_name})
        assert response.status_code == 201
        assert client.get(f"/albums/{album['id']}/size").json()["formatted_size"] == "2 KB"

        unsorted = client.get("/photos/unsorted").json()["data"]
        assert unsorted == []

        response = client.delete(f"/albums/{album['id']}/photos/{photo.photo_name}")
        assert response.status_code == 200
        response = client.delete(f"/albums/{album['id']}/photos/{photo.photo_name}")
        assert response.status_code == 404
        assert response.json() == {"error": "Photo not found in album"}

        unsorted = client.get("/photos/unsorted").json()["data"]
        assert [p["status"] for p in unsorted] == [PhotoStatus.UNSORTED.value]

    def test_album_validation(self, client: TestClient):
        """Test album colors must be #RRGGBB."""
        response = client.post("/albums", json={"title": "Trip", "hexcolor": "green"})
        assert response.status_code == 422

    def test_other_users_album(self, client: TestClient):
        """Test albums of other users are not found."""
        album = client.post(
            "/albums", json={"title": "Mine", "hexcolor": "#000000"}, headers={"X-User-Id": OTHER_USER_ID}
        ).json()["data"]

        response = client.get(f"/albums/{album['id']}")
        assert response.status_code == 404
        assert "error" in response.json()

    def test_update_without_fields(self, client: TestClient):
        """Test an empty album update is a bad request."""
        album = client.post("/albums", json={"title": "Mine", "hexcolor": "#000000"}).json()["data"]
        response = client.put(f"/albums/{album['id']}", json={})
        assert response.status_code == 400

    def test_category_routes(self, client: TestClient):
        """Test category create, list, update and delete."""
        category = client.post("/categories", json={"name": "Travel"}).json()["data"]

        listed = client.get("/categories").json()["data"]
        assert listed[0]["album_count"] == 0

        updated = client.put(f"/categories/{category['id']}", json={"name": "Trips"}).json()["data"]
        assert updated["name"] == "Trips"

        assert client.post(f"/categories/{category['id']}/delete").status_code == 200
        assert client.get(f"/categories/{category['id']}").status_code == 404
