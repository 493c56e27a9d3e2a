"""Tests for posts, upvotes and comments."""
import pytest
from werkzeug.security import generate_password_hash

from app.blog import create_app
from app.blog.db import session_scope
from app.blog.models import Base, Comment, Post, User, Vote


@pytest.fixture()
def app(tmp_path, monkeypatch):
    monkeypatch.setenv("SECRET_KEY", "test-secret")
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{tmp_path/'test.db'}")
    monkeypatch.setenv("ENV", "test")
    monkeypatch.delenv("SESSION_COOKIE_NAME", raising=False)

    app = create_app()
    engine = app.extensions["sqlalchemy_engine"]
    Base.metadata.create_all(bind=engine)

    with session_scope(app) as s:
        s.add(User(username="alice", email="alice@example.com", password_hash=generate_password_hash("pw1234")))
        s.add(User(username="bob", email="bob@example.com", password_hash=generate_password_hash("pw5678")))
    return app


@pytest.fixture()
def client(app):
    return app.test_client()


def _login(client, email="alice@example.com", password="pw1234"):
    r = client.post("/api/users/login", json={"email": email, "password": password})
    assert r.status_code == 200
    return r.json["user"]


def _new_post(client, title="Hello", post_text="First post"):
    r = client.post("/api/posts", json={"title": title, "post_text": post_text})
    assert r.status_code == 200
    return r.json


def test_create_post_requires_session(client):
    r = client.post("/api/posts", json={"title": "Hello", "post_text": "First post"})
    assert r.status_code == 401


def test_create_post_owned_by_session_user(client):
    user = _login(client)
    post = _new_post(client)
    assert post["user_id"] == user["id"]
    assert post["user"]["username"] == "alice"
    assert post["vote_count"] == 0
    assert post["comments"] == []


def test_create_post_validation(client):
    _login(client)
    r = client.post("/api/posts", json={"title": "", "post_text": ""})
    assert r.status_code == 400
    assert "Title is required." in r.json["errors"]
    assert "Post text must be at least 1 character." in r.json["errors"]


def test_list_posts_newest_first(client):
    _login(client)
    _new_post(client, title="one")
    _new_post(client, title="two")
    r = client.get("/api/posts")
    assert r.status_code == 200
    assert [p["title"] for p in r.json] == ["two", "one"]


def test_get_post_404(client):
    r = client.get("/api/posts/42")
    assert r.status_code == 404
    assert r.json["message"] == "No post found with this id"


def test_update_post(client):
    _login(client)
    post = _new_post(client)
    r = client.put(f"/api/posts/{post['id']}", json={"title": "Edited"})
    assert r.status_code == 200
    assert r.json["title"] == "Edited"
    assert r.json["post_text"] == "First post"


def test_update_post_rejects_blank_text(client):
    _login(client)
    post = _new_post(client)
    r = client.put(f"/api/posts/{post['id']}", json={"post_text": "   "})
    assert r.status_code == 400


def test_delete_post_404(client):
    _login(client)
    r = client.delete("/api/posts/42")
    assert r.status_code == 404


def test_delete_post_removes_comments_and_votes(app, client):
    _login(client)
    post = _new_post(client)
    client.post("/api/comments", json={"comment_text": "nice", "post_id": post["id"]})
    client.put("/api/posts/upvote", json={"post_id": post["id"]})

    r = client.delete(f"/api/posts/{post['id']}")
    assert r.status_code == 200

    with session_scope(app) as s:
        assert s.query(Comment).count() == 0
        assert s.query(Vote).count() == 0


def test_upvote(client):
    _login(client)
    post = _new_post(client)
    client.post("/api/users/logout")

    _login(client, email="bob@example.com", password="pw5678")
    r = client.put("/api/posts/upvote", json={"post_id": post["id"]})
    assert r.status_code == 200
    assert r.json["vote_count"] == 1

    r = client.get("/api/users/2")
    assert r.json["voted_posts"] == [{"id": post["id"], "title": "Hello"}]


def test_upvote_twice_rejected(client):
    _login(client)
    post = _new_post(client)
    assert client.put("/api/posts/upvote", json={"post_id": post["id"]}).status_code == 200
    r = client.put("/api/posts/upvote", json={"post_id": post["id"]})
    assert r.status_code == 400
    assert r.json["message"] == "You have already upvoted this post."
    assert client.get(f"/api/posts/{post['id']}").json["vote_count"] == 1


def test_upvote_missing_post(client):
    _login(client)
    r = client.put("/api/posts/upvote", json={"post_id": 42})
    assert r.status_code == 404


def test_upvote_requires_post_id(client):
    _login(client)
    r = client.put("/api/posts/upvote", json={})
    assert r.status_code == 400


def test_upvote_requires_session(client):
    r = client.put("/api/posts/upvote", json={"post_id": 1})
    assert r.status_code == 401


def test_comment_on_post(client):
    _login(client)
    post = _new_post(client)
    r = client.post("/api/comments", json={"comment_text": "Great read", "post_id": post["id"]})
    assert r.status_code == 200
    assert r.json["user"]["username"] == "alice"

    r = client.get(f"/api/posts/{post['id']}")
    assert [c["comment_text"] for c in r.json["comments"]] == ["Great read"]

    r = client.get("/api/users/1")
    assert r.json["comments"][0]["post"] == {"title": "Hello"}
    assert r.json["posts"][0]["title"] == "Hello"


def test_comment_on_missing_post_404(client):
    _login(client)
    r = client.post("/api/comments", json={"comment_text": "orphan", "post_id": 42})
    assert r.status_code == 404


def test_comment_validation(client):
    _login(client)
    r = client.post("/api/comments", json={"comment_text": "", "post_id": "abc"})
    assert r.status_code == 400
    assert "Comment text must be at least 1 character." in r.json["errors"]
    assert "post_id must be a positive integer." in r.json["errors"]


def test_comment_requires_session(client):
    r = client.post("/api/comments", json={"comment_text": "hi", "post_id": 1})
    assert r.status_code == 401


def test_list_and_delete_comments(client):
    _login(client)
    post = _new_post(client)
    c = client.post("/api/comments", json={"comment_text": "first", "post_id": post["id"]}).json
    assert [x["id"] for x in client.get("/api/comments").json] == [c["id"]]

    assert client.delete(f"/api/comments/{c['id']}").status_code == 200
    assert client.get("/api/comments").json == []
    assert client.delete(f"/api/comments/{c['id']}").status_code == 404


def test_deleting_user_cascades(app, client):
    _login(client)
    post = _new_post(client)
    client.post("/api/comments", json={"comment_text": "mine", "post_id": post["id"]})
    client.put("/api/posts/upvote", json={"post_id": post["id"]})

    r = client.delete("/api/users/1")
    assert r.status_code == 200

    with session_scope(app) as s:
        assert s.query(Post).count() == 0
        assert s.query(Comment).count() == 0
        assert s.query(Vote).count() == 0
        assert s.query(User).count() == 1


def test_post_requires_existing_user(app):
    from sqlalchemy.exc import IntegrityError

    with pytest.raises(IntegrityError):
        with session_scope(app) as s:
            s.add(Post(title="dangling", post_text="no owner", user_id=999))


def test_out_of_range_ids_are_404(client):
    _login(client)
    huge = 10**20
    r = client.get(f"/api/posts/{huge}")
    assert r.status_code == 404
    assert r.json["message"] == "No post found with this id"
    assert client.put(f"/api/posts/{huge}", json={"title": "x"}).status_code == 404
    assert client.delete(f"/api/posts/{huge}").status_code == 404

    r = client.delete(f"/api/comments/{huge}")
    assert r.status_code == 404
    assert r.json["message"] == "No comment found with this id"


def test_upvote_rejects_out_of_range_post_id(client):
    _login(client)
    r = client.put("/api/posts/upvote", json={"post_id": 10**20})
    assert r.status_code == 400
    assert r.json["errors"] == ["post_id must be a positive integer."]


@pytest.mark.parametrize("post_id", [1.9, True, -1, "1.0", [1]])
def test_upvote_rejects_non_integral_post_id(client, post_id):
    _login(client)
    _new_post(client)
    r = client.put("/api/posts/upvote", json={"post_id": post_id})
    assert r.status_code == 400


def test_upvote_accepts_numeric_string_post_id(client):
    _login(client)
    post = _new_post(client)
    r = client.put("/api/posts/upvote", json={"post_id": str(post["id"])})
    assert r.status_code == 200
    assert r.json["vote_count"] == 1


@pytest.mark.parametrize("post_id", [1.9, True, 10**20, 0])
def test_comment_rejects_bad_post_id(client, post_id):
    _login(client)
    _new_post(client)
    r = client.post("/api/comments", json={"comment_text": "hi", "post_id": post_id})
    assert r.status_code == 400
    assert "post_id must be a positive integer." in r.json["errors"]
    assert client.get("/api/comments").json == []


def test_comment_accepts_integral_float_post_id(client):
    _login(client)
    post = _new_post(client)
    r = client.post("/api/comments", json={"comment_text": "hi", "post_id": float(post["id"])})
    assert r.status_code == 200
    assert r.json["post_id"] == post["id"]
