from datetime import timedelta
from services.token_service import TokenService


async def test_me_returns_user(client, approved_user, login):
    tokens = await login(approved_user.email)

    response = await client.get("/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})

    assert response.status_code == 200
    assert response.json()["id"] == approved_user.id
    assert response.json()["email"] == approved_user.email


async def test_me_without_token(client):
    response = await client.get("/auth/me")

    assert response.status_code == 401


async def test_me_with_refresh_token(client, approved_user, login):
    tokens = await login(approved_user.email)

    response = await client.get("/auth/me", headers={"Authorization": f"Bearer {tokens['refresh_token']}"})

    assert response.status_code == 401


async def test_me_with_expired_token(client, approved_user):
    token = TokenService.create_access_token(approved_user.id, expires_delta=timedelta(seconds=-1))

    response = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["detail"] == "Could not validate credentials."


async def test_me_after_approval_revoked(client, session, approved_user, login):
    tokens = await login(approved_user.email)

    approved_user.approved = False
    session.commit()

    response = await client.get("/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})

    assert response.status_code == 403
    assert response.json()["code"] == "account_not_approved"


async def test_me_for_deleted_user(client, session, user_factory):
    user = user_factory("gone@example.com")
    token = TokenService.create_access_token(user.id)
    session.delete(user)
    session.commit()

    response = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
