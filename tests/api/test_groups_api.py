"""HTTP /groups: создание, права администратора, выход."""
import pytest
from fastapi.testclient import TestClient

from sharehub.db.session import get_db
from sharehub.main import app
from sharehub.services.auth.security import create_access_token


@pytest.fixture
def api(db):
    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _auth(account):
    return {"Authorization": f"Bearer {create_access_token(account.id)}"}


def test_group_lifecycle(api, make_account):
    admin = make_account("admin")
    member = make_account("member")
    newcomer = make_account("newcomer")

    resp = api.post("/groups", json={"name": "Клуб", "member_ids": [member.id]}, headers=_auth(admin))
    assert resp.status_code == 200
    group_id = resp.json()["id"]

    resp = api.post(f"/groups/{group_id}/members", json={"user_id": newcomer.id}, headers=_auth(member))
    assert resp.status_code == 403
    assert "error" in resp.json()

    resp = api.post(f"/groups/{group_id}/members", json={"user_id": newcomer.id}, headers=_auth(admin))
    assert resp.json() == {"ok": True}

    api.post(f"/groups/{group_id}/messages", json={"content": "всем привет"}, headers=_auth(newcomer))
    messages = api.get(f"/groups/{group_id}/messages", headers=_auth(member)).json()
    assert [m["content"] for m in messages] == ["всем привет"]

    assert api.post(f"/groups/{group_id}/leave", headers=_auth(newcomer)).json() == {"ok": True}
    members = api.get(f"/groups/{group_id}/members", headers=_auth(admin)).json()
    assert {m["username"] for m in members} == {"admin", "member"}

    assert api.get(f"/groups/{group_id}", headers=_auth(newcomer)).status_code == 404
