from blogauth.models.user import User
from blogauth.core.security import get_password_hash

AUTH = "/api/v1/auth"
USERS = "/api/v1/users"
ADMIN = "/api/v1/admin"


def _submit(client, path, username, password):
    challenge = client.get(f"{AUTH}/captcha").headers["X-Captcha-Id"]
    response = client.post(
        f"{AUTH}/{path}",
        json={"username": username, "password": password, "captcha": "AB12"},
        headers={"X-Captcha-Id": challenge},
    )
    assert response.status_code in (200, 201), response.text
    return response.json()


def _login(client, username, password):
    body = _submit(client, "login", username, password)
    return {"Authorization": f"Bearer {body['token']}"}, body["refreshToken"]


def _signup_and_login(client, username, password="secret1"):
    _submit(client, "register", username, password)
    headers, refresh = _login(client, username, password)
    me = client.get(f"{AUTH}/me", headers=headers).json()
    return headers, me["id"], refresh


def test_follow_updates_both_sides(client):
    alice, alice_id, _ = _signup_and_login(client, "alice")
    bob, bob_id, _ = _signup_and_login(client, "bob")

    assert client.post(f"{USERS}/follow/{bob_id}", headers=alice).status_code == 200
    assert client.get(f"{USERS}/check-following/{bob_id}", headers=alice).json() == {"isFollowing": True}

    following = client.get(f"{USERS}/following", headers=alice).json()
    followers = client.get(f"{USERS}/followers", headers=bob).json()
    assert [u["id"] for u in following] == [bob_id]
    assert [u["id"] for u in followers] == [alice_id]
    assert client.get(f"{AUTH}/me", headers=bob).json()["stats"]["followers"] == 1
    assert client.get(f"{AUTH}/me", headers=alice).json()["stats"]["following"] == 1

    assert client.post(f"{USERS}/unfollow/{bob_id}", headers=alice).status_code == 200
    assert client.get(f"{USERS}/check-following/{bob_id}", headers=alice).json() == {"isFollowing": False}


def test_follow_errors(client):
    alice, alice_id, _ = _signup_and_login(client, "alice")
    bob, bob_id, _ = _signup_and_login(client, "bob")

    assert client.post(f"{USERS}/follow/{alice_id}", headers=alice).status_code == 400
    assert client.post(f"{USERS}/follow/missing-id", headers=alice).status_code == 404
    client.post(f"{USERS}/follow/{bob_id}", headers=alice)
    assert client.post(f"{USERS}/follow/{bob_id}", headers=alice).status_code == 400
    assert client.post(f"{USERS}/unfollow/{alice_id}", headers=bob).status_code == 400


def test_article_marks_feed_profile_stats(client):
    alice, _, _ = _signup_and_login(client, "alice")

    assert client.put(f"{USERS}/me/marks/like/article-1", headers=alice).json()["created"] is True
    assert client.put(f"{USERS}/me/marks/like/article-1", headers=alice).json()["created"] is False
    client.put(f"{USERS}/me/marks/collect/article-2", headers=alice)

    assert client.get(f"{USERS}/me/marks/like", headers=alice).json() == ["article-1"]
    stats = client.get(f"{AUTH}/me", headers=alice).json()["stats"]
    assert stats["likes"] == 1 and stats["collections"] == 1 and stats["favorites"] == 0

    assert client.delete(f"{USERS}/me/marks/like/article-1", headers=alice).json()["removed"] is True
    assert client.get(f"{USERS}/me/marks/like", headers=alice).json() == []

    bad_kind = client.put(f"{USERS}/me/marks/bookmark/article-1", headers=alice)
    assert bad_kind.status_code == 400
    assert bad_kind.json()["code"] == "validation_error"


def test_admin_routes_require_admin(client, db_session):
    alice, alice_id, alice_refresh = _signup_and_login(client, "alice")
    assert client.get(f"{ADMIN}/users", headers=alice).status_code == 403

    db_session.add(User(username="root", password_hash=get_password_hash("rootpass"), role="admin"))
    db_session.commit()
    admin, _ = _login(client, "root", "rootpass")

    users = client.get(f"{ADMIN}/users", headers=admin).json()
    assert {u["username"] for u in users} == {"alice", "root"}
    assert next(u for u in users if u["username"] == "alice")["hasRefreshSession"] is True

    revoked = client.post(f"{ADMIN}/users/{alice_id}/revoke-session", headers=admin)
    assert revoked.status_code == 200
    assert revoked.json()["hadSession"] is True

    refreshed = client.post(f"{AUTH}/refresh", json={"refreshToken": alice_refresh})
    assert refreshed.status_code == 403
    assert refreshed.json()["code"] == "session_revoked"

    assert client.post(f"{ADMIN}/users/missing-id/revoke-session", headers=admin).status_code == 404

    events = client.get(f"{ADMIN}/audit-events", params={"action": "revoke_session"}, headers=admin).json()
    assert len(events) == 1
    assert events[0]["targetId"] == alice_id
    assert events[0]["username"] == "root"
    assert events[0]["metadata"] == {"had_session": True}

    logins = client.get(f"{ADMIN}/audit-events", params={"targetId": alice_id, "action": "login"}, headers=admin)
    assert [e["action"] for e in logins.json()] == ["login"]
    assert client.get(f"{ADMIN}/audit-events", params={"action": "nope"}, headers=admin).status_code == 400
