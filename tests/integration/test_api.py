"""Integration tests for the pixelmorpher FastAPI endpoints.

All tests use the FastAPI TestClient against a temporary sqlite database,
with the current user dependency overridden, Redis replaced by a Mock and
Cloudinary uploads patched. Transformation URLs are built offline.
"""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import patch

UPLOAD_RESULT = {
    "public_id": "sample",
    "secure_url": "https://res.cloudinary.com/demo/image/upload/sample.jpg",
    "width": 800,
    "height": 600,
}


def open_form(client, **payload) -> dict:
    resp = client.post("/forms", json=payload)
    assert resp.status_code == 200, resp.text
    return resp.json()


def upload(client, media, form_id, content_type="image/png"):
    with patch.object(media, "upload_image", return_value=UPLOAD_RESULT):
        return client.post(
            f"/forms/{form_id}/upload",
            files={"file": ("photo.png", b"\x89PNG fake bytes", content_type)},
        )


# ---------------------------------------------------------------------------
# Health and user endpoints.
# ---------------------------------------------------------------------------


class TestHealth:

    def test_health(self, test_client):
        resp = test_client.get("/health/")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"

    def test_redis_health_uses_revalidator(self, test_client, revalidator):
        revalidator.ping.return_value = False
        assert test_client.get("/health/redis").json()["status"] == "unhealthy"


class TestUsers:

    def test_me(self, test_client, user):
        resp = test_client.get("/users/me")
        assert resp.status_code == 200
        assert resp.json()["id"] == user["id"]
        assert resp.json()["credit_balance"] == 10

    def test_update_me(self, test_client):
        resp = test_client.put("/users/me", json={"username": "pixelfan"})
        assert resp.status_code == 200
        assert resp.json()["username"] == "pixelfan"

    def test_requires_token_without_override(self, app):
        from fastapi.testclient import TestClient

        with TestClient(app) as client:
            assert client.get("/users/me").status_code == 401


# ---------------------------------------------------------------------------
# Transformation form workflow.
# ---------------------------------------------------------------------------


class TestAddWorkflow:

    def test_upload_transform_save(self, test_client, media, user):
        form = open_form(test_client, type="restore")
        form_id = form["id"]
        assert form["can_transform"] is False

        resp = upload(test_client, media, form_id)
        assert resp.status_code == 200
        assert resp.json()["can_transform"] is True

        resp = test_client.post(f"/forms/{form_id}/transform")
        assert resp.status_code == 200
        body = resp.json()
        assert "e_gen_restore" in body["preview_url"]
        assert body["transformation_config"] == {"restore": True}
        assert body["credit_balance"] == user["credit_balance"] - 1
        assert body["can_transform"] is False

        resp = test_client.post(f"/forms/{form_id}/save", json={"title": "Restored"}, follow_redirects=False)
        assert resp.status_code == 303
        location = resp.headers["location"]
        assert location.startswith("/transformations/")

        detail = test_client.get(location).json()
        assert detail["title"] == "Restored"
        assert detail["author"]["id"] == user["id"]
        assert test_client.get("/users/me").json()["credit_balance"] == user["credit_balance"] - 1

    def test_fill_aspect_ratio(self, test_client, media):
        form_id = open_form(test_client, type="fill")["id"]
        upload(test_client, media, form_id)

        resp = test_client.patch(f"/forms/{form_id}/fields", json={"name": "aspect_ratio", "value": "9:16"})

        assert resp.status_code == 200
        body = resp.json()
        assert body["image"]["height"] == 1778
        assert body["new_transformation"] == {"fillBackground": True}

    def test_transform_without_pending_change_conflicts(self, test_client):
        form_id = open_form(test_client, type="recolor")["id"]
        resp = test_client.post(f"/forms/{form_id}/transform")
        assert resp.status_code == 409

    def test_field_outside_type_conflicts(self, test_client):
        form_id = open_form(test_client, type="restore")["id"]
        resp = test_client.patch(f"/forms/{form_id}/fields", json={"name": "prompt", "value": "dog"})
        assert resp.status_code == 409

    def test_non_image_upload_is_rejected(self, test_client, media):
        form_id = open_form(test_client, type="restore")["id"]
        resp = upload(test_client, media, form_id, content_type="text/plain")
        assert resp.status_code == 400

    def test_save_without_image_fails(self, test_client):
        form_id = open_form(test_client, type="restore")["id"]
        resp = test_client.post(f"/forms/{form_id}/save", json={"title": "x"}, follow_redirects=False)
        assert resp.status_code == 409

    def test_unknown_form(self, test_client):
        assert test_client.get("/forms/does-not-exist").status_code == 404

    def test_discard_form(self, test_client):
        form_id = open_form(test_client, type="restore")["id"]
        assert test_client.delete(f"/forms/{form_id}").status_code == 200
        assert test_client.get(f"/forms/{form_id}").status_code == 404


class TestUpdateWorkflow:

    def test_owner_updates_image(self, test_client, user, make_image):
        image = make_image(user["id"])

        form = open_form(test_client, action="Update", type="restore", image_id=image["id"])
        assert form["values"]["title"] == image["title"]

        resp = test_client.post(f"/forms/{form['id']}/save", json={"title": "Renamed"}, follow_redirects=False)

        assert resp.status_code == 303
        assert resp.headers["location"] == f"/transformations/{image['id']}"
        assert test_client.get(f"/transformations/{image['id']}").json()["title"] == "Renamed"

    def test_form_uses_the_stored_transformation_type(self, test_client, user, make_image):
        image = make_image(user["id"])

        form = open_form(test_client, action="Update", type="recolor", image_id=image["id"])
        assert form["type"] == "restore"
        assert form["title"] == "Restore Image"

        resp = test_client.post(f"/forms/{form['id']}/save", json={"title": "Still restored"}, follow_redirects=False)

        assert resp.status_code == 303
        detail = test_client.get(f"/transformations/{image['id']}").json()
        assert detail["transformation_type"] == "restore"
        assert detail["config"] == {"restore": True}

    def test_saved_forms_are_discarded(self, app, test_client, user, make_image):
        form_ids = []
        for title in ["One", "Two", "Three"]:
            image = make_image(user["id"], title=title)
            form_id = open_form(test_client, action="Update", type="restore", image_id=image["id"])["id"]
            resp = test_client.post(f"/forms/{form_id}/save", json={"title": title.lower()}, follow_redirects=False)
            assert resp.status_code == 303
            form_ids.append(form_id)

        assert len(app.state.forms) == 0
        assert test_client.get(f"/forms/{form_ids[0]}").status_code == 404

    def test_failed_save_keeps_the_form(self, app, test_client):
        form_id = open_form(test_client, type="restore")["id"]

        resp = test_client.post(f"/forms/{form_id}/save", json={"title": "x"}, follow_redirects=False)

        assert resp.status_code == 409
        assert len(app.state.forms) == 1

    def test_other_users_image_is_forbidden(self, test_client, make_user, make_image):
        other = make_user()
        image = make_image(other["id"])

        resp = test_client.post("/forms", json={"action": "Update", "type": "restore", "image_id": image["id"]})

        assert resp.status_code == 403

    def test_missing_image(self, test_client):
        resp = test_client.post("/forms", json={"action": "Update", "type": "restore", "image_id": 404})
        assert resp.status_code == 404


# ---------------------------------------------------------------------------
# Pages.
# ---------------------------------------------------------------------------


class TestPages:

    def test_home_lists_images(self, test_client, user, make_image):
        make_image(user["id"], title="Sunset")
        make_image(user["id"], title="Harbour")

        body = test_client.get("/", params={"query": "sun"}).json()

        assert [image["title"] for image in body["data"]] == ["Sunset"]

    def test_profile(self, test_client, user, make_image):
        make_image(user["id"])
        body = test_client.get("/profile").json()
        assert body["credit_balance"] == user["credit_balance"]
        assert len(body["images"]["data"]) == 1

    def test_stale_page_is_served_uncached(self, test_client, revalidator):
        revalidator.consume_revalidation.return_value = datetime.now(timezone.utc)
        resp = test_client.get("/")
        assert resp.headers["cache-control"] == "no-cache"
        revalidator.consume_revalidation.assert_called_with("/")

    def test_missing_image_detail(self, test_client):
        assert test_client.get("/transformations/999").status_code == 404

    def test_delete_removes_image_and_asset(self, test_client, media, user, make_image):
        image = make_image(user["id"], public_id="pixelmorpher/portrait_1")

        with patch("cloudinary.uploader.destroy", return_value={"result": "ok"}) as mock_destroy:
            resp = test_client.post(f"/transformations/{image['id']}/delete", follow_redirects=False)

        assert resp.status_code == 303
        assert resp.headers["location"] == "/"
        assert test_client.get(f"/transformations/{image['id']}").status_code == 404
        mock_destroy.assert_called_once_with("pixelmorpher/portrait_1")

    def test_delete_survives_provider_failure(self, test_client, user, make_image):
        image = make_image(user["id"])

        with patch("cloudinary.uploader.destroy", side_effect=RuntimeError("timeout")):
            resp = test_client.post(f"/transformations/{image['id']}/delete", follow_redirects=False)

        assert resp.status_code == 303
        assert test_client.get(f"/transformations/{image['id']}").status_code == 404

    def test_cannot_delete_someone_elses_image(self, test_client, make_user, make_image):
        other = make_user()
        image = make_image(other["id"])

        with patch("cloudinary.uploader.destroy") as mock_destroy:
            resp = test_client.post(f"/transformations/{image['id']}/delete", follow_redirects=False)

        assert resp.status_code == 303
        assert resp.headers["location"] == "/"
        assert test_client.get(f"/transformations/{image['id']}").status_code == 200
        mock_destroy.assert_not_called()

    def test_delete_of_missing_image_redirects_home(self, test_client):
        with patch("cloudinary.uploader.destroy") as mock_destroy:
            resp = test_client.post("/transformations/999/delete", follow_redirects=False)
        assert resp.status_code == 303
        assert resp.headers["location"] == "/"
        mock_destroy.assert_not_called()
