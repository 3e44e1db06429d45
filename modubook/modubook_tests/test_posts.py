import os
from unittest.mock import patch

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from modubook.modubook.social_service.config import settings
from modubook.modubook.social_service.db import SessionLocal
from modubook.modubook.social_service.models import Comment, Hashtag, Like, Post, PostImage
from .conftest import auth_header_for, ensure_user

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def create_post(client, user_id, title="Good book", content="Loved it #novel #classic", files=None, **fields):
    data = {"title": title, "content": content}
    data.update({k: str(v) for k, v in fields.items()})
    return client.post("/api/posts", data=data, files=files, headers=auth_header_for(user_id))


def test_create_post_requires_auth(client):
    resp = client.post("/api/posts", data={"title": "t", "content": "c"})
    assert resp.status_code == 401


def test_create_post_with_book_fields_and_hashtags(client):
    user = ensure_user()
    resp = create_post(
        client, user["id"],
        content="Loved it #novel #classic #novel",
        rating=5,
        book_isbn="9788936434120",
        book_title="Almond",
        book_author="Sohn Won-pyung"
    )
    assert resp.status_code == 201
    post = resp.json()
    assert post["title"] == "Good book"
    assert post["rating"] == 5
    assert post["book_isbn"] == "9788936434120"
    assert post["hashtags"] == ["novel", "classic"]
    assert post["author"]["nickname"] == user["nickname"]
    assert post["like_count"] == 0
    assert post["comment_count"] == 0
    assert post["is_liked"] is False


def test_create_post_rejects_blank_title_and_bad_rating(client):
    user = ensure_user()
    assert create_post(client, user["id"], title="   ").status_code == 400
    assert create_post(client, user["id"], rating=6).status_code == 422
    assert create_post(client, user["id"], rating=0).status_code == 422


def test_create_post_with_images(client):
    user = ensure_user()
    files = [
        ("images", ("cover.png", PNG_BYTES, "image/png")),
        ("images", ("page.jpg", b"\xff\xd8\xff" + b"\x00" * 32, "image/jpeg")),
    ]
    resp = create_post(client, user["id"], files=files)
    assert resp.status_code == 201
    images = resp.json()["images"]
    assert len(images) == 2
    assert all(url.startswith("/uploads/") for url in images)
    assert images[0].startswith("/uploads/cover-")

    # Served by the static mount
    served = client.get(images[0])
    assert served.status_code == 200
    assert served.content == PNG_BYTES


def test_create_post_rejects_bad_image_type(client):
    user = ensure_user()
    files = [("images", ("notes.txt", b"hello", "text/plain"))]
    resp = create_post(client, user["id"], files=files)
    assert resp.status_code == 400

    db = SessionLocal()
    try:
        assert db.query(Post).count() == 0
    finally:
        db.close()


def test_create_post_rejects_too_many_images(client):
    user = ensure_user()
    files = [("images", (f"img{i}.png", PNG_BYTES, "image/png")) for i in range(settings.MAX_IMAGES_PER_POST + 1)]
    resp = create_post(client, user["id"], files=files)
    assert resp.status_code == 400


def test_create_post_rejects_oversized_image(client, monkeypatch):
    monkeypatch.setattr(settings, "MAX_IMAGE_SIZE_BYTES", 16)
    user = ensure_user()
    files = [("images", ("big.png", PNG_BYTES, "image/png"))]
    resp = create_post(client, user["id"], files=files)
    assert resp.status_code == 400


def test_list_posts_newest_first_with_pagination(client):
    user = ensure_user()
    for i in range(3):
        assert create_post(client, user["id"], title=f"Post {i}").status_code == 201

    resp = client.get("/api/posts", params={"limit": 2, "offset": 0})
    assert resp.status_code == 200
    body = resp.json()
    assert [p["title"] for p in body["posts"]] == ["Post 2", "Post 1"]
    assert body["pagination"] == {"limit": 2, "offset": 0, "count": 2, "total": 3}

    page2 = client.get("/api/posts", params={"limit": 2, "offset": 2}).json()
    assert [p["title"] for p in page2["posts"]] == ["Post 0"]
    assert page2["pagination"]["count"] == 1


def test_list_posts_limit_bounds(client):
    assert client.get("/api/posts", params={"limit": 0}).status_code == 422
    assert client.get("/api/posts", params={"limit": 101}).status_code == 422
    assert client.get("/api/posts", params={"offset": -1}).status_code == 422
    assert client.get("/api/posts").json()["pagination"]["limit"] == 20


def test_list_posts_filtered_by_hashtag(client):
    user = ensure_user()
    create_post(client, user["id"], title="Fantasy", content="Dragons #fantasy")
    create_post(client, user["id"], title="Essay", content="Thoughts #essay")

    resp = client.get("/api/posts", params={"hashtag": "fantasy"})
    body = resp.json()
    assert [p["title"] for p in body["posts"]] == ["Fantasy"]
    assert body["pagination"]["total"] == 1

    # A leading '#' is accepted
    assert client.get("/api/posts", params={"hashtag": "#essay"}).json()["pagination"]["total"] == 1


def test_get_post_reports_viewer_like_state(client):
    author = ensure_user()
    viewer = ensure_user()
    post_id = create_post(client, author["id"]).json()["id"]
    client.post(f"/api/posts/{post_id}/toggle-like", headers=auth_header_for(viewer["id"]))

    anonymous = client.get(f"/api/posts/{post_id}").json()
    assert anonymous["like_count"] == 1
    assert anonymous["is_liked"] is False

    mine = client.get(f"/api/posts/{post_id}", headers=auth_header_for(viewer["id"])).json()
    assert mine["is_liked"] is True

    assert client.get("/api/posts/9999").status_code == 404


def test_update_post_by_owner(client):
    user = ensure_user()
    post = create_post(client, user["id"]).json()

    resp = client.put(
        f"/api/posts/{post['id']}",
        json={"content": "Changed my mind #reread", "rating": 3},
        headers=auth_header_for(user["id"])
    )
    assert resp.status_code == 200
    updated = resp.json()
    assert updated["title"] == "Good book"
    assert updated["content"] == "Changed my mind #reread"
    assert updated["rating"] == 3
    assert updated["hashtags"] == ["reread"]

    # Title-only update keeps hashtags
    resp = client.put(f"/api/posts/{post['id']}", json={"title": "New title"}, headers=auth_header_for(user["id"]))
    assert resp.json()["hashtags"] == ["reread"]


def test_update_post_validation_and_permissions(client):
    owner = ensure_user()
    other = ensure_user()
    post_id = create_post(client, owner["id"]).json()["id"]

    assert client.put(f"/api/posts/{post_id}", json={"title": "x"}).status_code == 401
    assert client.put(
        f"/api/posts/{post_id}", json={"title": "x"}, headers=auth_header_for(other["id"])
    ).status_code == 403
    assert client.put(
        "/api/posts/9999", json={"title": "x"}, headers=auth_header_for(owner["id"])
    ).status_code == 404
    assert client.put(
        f"/api/posts/{post_id}", json={"title": "   "}, headers=auth_header_for(owner["id"])
    ).status_code == 400
    assert client.put(
        f"/api/posts/{post_id}", json={"rating": 9}, headers=auth_header_for(owner["id"])
    ).status_code == 422


def test_delete_post_removes_dependents_and_files(client):
    owner = ensure_user()
    fan = ensure_user()
    files = [("images", ("cover.png", PNG_BYTES, "image/png"))]
    post_id = create_post(client, owner["id"], files=files).json()["id"]

    client.post(f"/api/posts/{post_id}/comments", json={"content": "Nice"}, headers=auth_header_for(fan["id"]))
    client.post(f"/api/posts/{post_id}/toggle-like", headers=auth_header_for(fan["id"]))

    db = SessionLocal()
    try:
        file_path = db.query(PostImage).filter(PostImage.post_id == post_id).one().file_path
    finally:
        db.close()
    assert os.path.exists(file_path)

    assert client.delete(f"/api/posts/{post_id}", headers=auth_header_for(fan["id"])).status_code == 403

    resp = client.delete(f"/api/posts/{post_id}", headers=auth_header_for(owner["id"]))
    assert resp.status_code == 200
    assert not os.path.exists(file_path)

    db = SessionLocal()
    try:
        assert db.query(Post).filter(Post.id == post_id).first() is None
        assert db.query(PostImage).count() == 0
        assert db.query(Comment).count() == 0
        assert db.query(Like).count() == 0
        # Hashtags outlive the posts that used them
        assert db.query(Hashtag).count() == 2
    finally:
        db.close()

    assert client.get(f"/api/posts/{post_id}").status_code == 404


def test_uploaded_image_url_is_reachable_for_unsafe_filename(client):
    user = ensure_user()
    files = [("images", ("cover #1?.png", PNG_BYTES, "image/png"))]
    resp = create_post(client, user["id"], files=files)
    assert resp.status_code == 201

    url = resp.json()["images"][0]
    assert "#" not in url
    assert "?" not in url
    served = client.get(url)
    assert served.status_code == 200
    assert served.content == PNG_BYTES


def test_oversized_post_id_is_rejected(client):
    user = ensure_user()
    huge = "99999999999999999999"
    assert client.get(f"/api/posts/{huge}").status_code == 422
    assert client.get(f"/api/posts/{huge}/likes").status_code == 422
    assert client.put(f"/api/posts/{huge}", json={"title": "x"}, headers=auth_header_for(user["id"])).status_code == 422
    assert client.delete(f"/api/posts/{huge}", headers=auth_header_for(user["id"])).status_code == 422
    assert client.post(f"/api/posts/{huge}/toggle-like", headers=auth_header_for(user["id"])).status_code == 422
    assert client.get("/api/posts/0").status_code == 422


def test_update_post_rolls_back_on_database_error(client):
    user = ensure_user()
    post = create_post(client, user["id"], content="Before #old").json()

    failure = IntegrityError("INSERT INTO hashtags", {}, Exception("UNIQUE constraint failed: hashtags.name"))
    with patch.object(Session, "commit", side_effect=failure):
        resp = client.put(
            f"/api/posts/{post['id']}",
            json={"content": "After #new"},
            headers=auth_header_for(user["id"])
        )
    assert resp.status_code == 500
    assert resp.json()["detail"] == "Failed to update post"

    current = client.get(f"/api/posts/{post['id']}").json()
    assert current["content"] == "Before #old"
    assert current["hashtags"] == ["old"]
