"""
Tests for pin CRUD, image-host interaction and comments.
"""
import asyncio
from datetime import datetime
from unittest.mock import patch

from botocore.exceptions import ClientError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from pinboard.config import settings
from pinboard.models import Comment

from conftest import PNG_BYTES, create_pin

MISSING_ID = "00000000-0000-0000-0000-000000000000"


def _client_error(op):
    return ClientError({"Error": {"Code": "InternalError", "Message": "boom"}}, op)


def _parse(ts):
    return datetime.fromisoformat(ts.replace("Z", "+00:00"))


def _count_comments(engine, pin_id):
    async def _count():
        async with AsyncSession(engine) as session:
            result = await session.execute(
                select(func.count()).select_from(Comment).where(Comment.pin_id == pin_id)
            )
            return result.scalar_one()

    return asyncio.run(_count())


class TestCreatePin:

    def test_create_pin_uploads_image(self, alice, image_store):
        client, user = alice
        pin = create_pin(client)

        assert pin["title"] == "Sunset"
        assert pin["pin"] == "Golden hour at the beach"
        assert pin["owner"] == user["id"]
        assert pin["comments"] == []
        assert pin["image"]["id"] == "pinterest-clone/img-0.png"
        assert pin["image"]["url"] == "http://minio.test/pins/pinterest-clone/img-0.png"

        image_store["upload"].assert_called_once_with(PNG_BYTES, "image/png", "sunset.png")

    def test_requires_login(self, make_client, image_store):
        response = make_client().post(
            "/api/pin/new",
            data={"title": "t", "pin": "p"},
            files={"file": ("a.png", PNG_BYTES, "image/png")},
        )
        assert response.status_code == 401
        image_store["upload"].assert_not_called()

    def test_missing_file(self, alice):
        client, _ = alice
        response = client.post("/api/pin/new", data={"title": "t", "pin": "p"})
        assert response.status_code == 400
        assert response.json()["detail"] == "No file uploaded"

    def test_empty_file(self, alice):
        client, _ = alice
        response = client.post(
            "/api/pin/new",
            data={"title": "t", "pin": "p"},
            files={"file": ("a.png", b"", "image/png")},
        )
        assert response.status_code == 400

    def test_non_image_rejected(self, alice, image_store):
        client, _ = alice
        response = client.post(
            "/api/pin/new",
            data={"title": "t", "pin": "p"},
            files={"file": ("notes.txt", b"hello", "text/plain")},
        )
        assert response.status_code == 400
        image_store["upload"].assert_not_called()

    def test_missing_title_is_422(self, alice):
        client, _ = alice
        response = client.post(
            "/api/pin/new",
            data={"pin": "p"},
            files={"file": ("a.png", PNG_BYTES, "image/png")},
        )
        assert response.status_code == 422

    def test_upload_failure_is_500_and_nothing_stored(self, alice, image_store):
        client, _ = alice
        image_store["upload"].side_effect = _client_error("PutObject")
        response = client.post(
            "/api/pin/new",
            data={"title": "t", "pin": "p"},
            files={"file": ("a.png", PNG_BYTES, "image/png")},
        )
        assert response.status_code == 500
        assert response.json()["detail"] == "Error uploading file"
        assert client.get("/api/pin/all").json() == []

    def test_oversize_image_is_413(self, alice, image_store):
        client, _ = alice
        with patch.object(settings, "max_image_bytes", 16):
            response = client.post(
                "/api/pin/new",
                data={"title": "t", "pin": "p"},
                files={"file": ("big.png", PNG_BYTES, "image/png")},
            )
        assert response.status_code == 413
        assert response.json()["detail"] == "Image too large"
        image_store["upload"].assert_not_called()

    def test_image_at_cap_is_accepted(self, alice):
        client, _ = alice
        with patch.object(settings, "max_image_bytes", len(PNG_BYTES)):
            create_pin(client)

    def test_timestamps_match_on_read_back(self, alice):
        client, _ = alice
        created = create_pin(client)
        fetched = client.get(f"/api/pin/{created['id']}").json()

        assert fetched["created_at"] == created["created_at"]
        assert fetched["updated_at"] == created["updated_at"]
        assert _parse(fetched["created_at"]).utcoffset().total_seconds() == 0


class TestReadPins:

    def test_all_pins_newest_first(self, alice, bob):
        alice_client, _ = alice
        bob_client, _ = bob
        first = create_pin(alice_client, title="First")
        second = create_pin(bob_client, title="Second")

        pins = alice_client.get("/api/pin/all").json()
        assert [p["id"] for p in pins] == [second["id"], first["id"]]

    def test_get_single_pin(self, alice, bob):
        alice_client, _ = alice
        bob_client, _ = bob
        pin = create_pin(alice_client)

        response = bob_client.get(f"/api/pin/{pin['id']}")
        assert response.status_code == 200
        assert response.json()["title"] == "Sunset"

    def test_malformed_pin_id(self, alice):
        client, _ = alice
        response = client.get("/api/pin/abc")
        assert response.status_code == 400
        assert response.json()["detail"] == "Invalid pin ID"

    def test_missing_pin(self, alice):
        client, _ = alice
        response = client.get(f"/api/pin/{MISSING_ID}")
        assert response.status_code == 404
        assert response.json()["detail"] == "Pin not found"


class TestUpdatePin:

    def test_owner_can_update(self, alice):
        client, _ = alice
        pin = create_pin(client)

        response = client.put(f"/api/pin/{pin['id']}", json={"title": "Dusk"})
        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Pin updated"
        assert body["pin"]["title"] == "Dusk"
        assert body["pin"]["pin"] == "Golden hour at the beach"

        fetched = client.get(f"/api/pin/{pin['id']}").json()
        assert fetched["title"] == "Dusk"

    def test_other_user_forbidden(self, alice, bob):
        alice_client, _ = alice
        bob_client, _ = bob
        pin = create_pin(alice_client)

        response = bob_client.put(f"/api/pin/{pin['id']}", json={"title": "Mine now"})
        assert response.status_code == 403
        assert response.json()["detail"] == "Unauthorized"
        assert alice_client.get(f"/api/pin/{pin['id']}").json()["title"] == "Sunset"

    def test_body_only_update_bumps_updated_at(self, alice):
        client, _ = alice
        pin = create_pin(client)

        response = client.put(f"/api/pin/{pin['id']}", json={"pin": "Blue hour instead"})
        assert response.status_code == 200
        updated = response.json()["pin"]
        assert updated["title"] == "Sunset"
        assert updated["pin"] == "Blue hour instead"
        assert updated["created_at"] == pin["created_at"]
        assert _parse(updated["updated_at"]) > _parse(updated["created_at"])

        fetched = client.get(f"/api/pin/{pin['id']}").json()
        assert fetched["updated_at"] == updated["updated_at"]

    def test_update_missing_pin(self, alice):
        client, _ = alice
        assert client.put(f"/api/pin/{MISSING_ID}", json={"title": "x"}).status_code == 404


class TestDeletePin:

    def test_owner_deletes_pin_and_image(self, alice, image_store, db_engine):
        client, _ = alice
        pin = create_pin(client)
        client.post(f"/api/pin/comment/{pin['id']}", json={"comment": "nice"})
        assert _count_comments(db_engine, pin["id"]) == 1

        response = client.delete(f"/api/pin/{pin['id']}")
        assert response.status_code == 200
        assert response.json()["message"] == "Pin Deleted"
        image_store["delete"].assert_called_once_with(pin["image"]["id"])
        assert client.get(f"/api/pin/{pin['id']}").status_code == 404
        assert _count_comments(db_engine, pin["id"]) == 0

    def test_other_user_forbidden(self, alice, bob, image_store):
        alice_client, _ = alice
        bob_client, _ = bob
        pin = create_pin(alice_client)

        assert bob_client.delete(f"/api/pin/{pin['id']}").status_code == 403
        image_store["delete"].assert_not_called()

    def test_image_delete_failure_keeps_pin(self, alice, image_store):
        client, _ = alice
        pin = create_pin(client)
        image_store["delete"].side_effect = _client_error("DeleteObject")

        response = client.delete(f"/api/pin/{pin['id']}")
        assert response.status_code == 500
        assert response.json()["detail"] == "Error deleting image"
        assert client.get(f"/api/pin/{pin['id']}").status_code == 200


class TestComments:

    def test_comment_is_stamped_with_author(self, alice, bob):
        alice_client, _ = alice
        bob_client, bob_user = bob
        pin = create_pin(alice_client)

        response = bob_client.post(f"/api/pin/comment/{pin['id']}", json={"comment": "Lovely!"})
        assert response.status_code == 200
        assert response.json()["message"] == "Comment Added"

        comments = alice_client.get(f"/api/pin/{pin['id']}").json()["comments"]
        assert len(comments) == 1
        assert comments[0]["user"] == bob_user["id"]
        assert comments[0]["name"] == "Bob"
        assert comments[0]["comment"] == "Lovely!"

    def test_comment_on_missing_pin(self, alice):
        client, _ = alice
        response = client.post(f"/api/pin/comment/{MISSING_ID}", json={"comment": "hi"})
        assert response.status_code == 404

    def test_empty_comment_is_422(self, alice):
        client, _ = alice
        pin = create_pin(client)
        assert client.post(f"/api/pin/comment/{pin['id']}", json={"comment": ""}).status_code == 422

    def test_only_author_deletes_comment(self, alice, bob):
        alice_client, _ = alice
        bob_client, _ = bob
        pin = create_pin(alice_client)
        bob_client.post(f"/api/pin/comment/{pin['id']}", json={"comment": "first"})
        comment_id = alice_client.get(f"/api/pin/{pin['id']}").json()["comments"][0]["id"]

        # the pin owner is not the comment author
        response = alice_client.delete(
            f"/api/pin/comment/{pin['id']}", params={"commentId": comment_id}
        )
        assert response.status_code == 403
        assert response.json()["detail"] == "Unauthorized or comment not found"

        response = bob_client.delete(
            f"/api/pin/comment/{pin['id']}", params={"commentId": comment_id}
        )
        assert response.status_code == 200
        assert response.json()["message"] == "Comment Deleted"
        assert alice_client.get(f"/api/pin/{pin['id']}").json()["comments"] == []

    def test_comment_must_belong_to_pin(self, alice):
        client, _ = alice
        pin_a = create_pin(client, title="A")
        pin_b = create_pin(client, title="B")
        client.post(f"/api/pin/comment/{pin_a['id']}", json={"comment": "on A"})
        comment_id = client.get(f"/api/pin/{pin_a['id']}").json()["comments"][0]["id"]

        response = client.delete(f"/api/pin/comment/{pin_b['id']}", params={"commentId": comment_id})
        assert response.status_code == 403
        assert len(client.get(f"/api/pin/{pin_a['id']}").json()["comments"]) == 1
