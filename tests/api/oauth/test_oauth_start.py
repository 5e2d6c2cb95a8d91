from tests.conftest import parse_redirect
from utils.pkce import compute_code_challenge

VERIFIER = "start-test-verifier-0123456789-abcdefghijklmnop"


async def test_start_redirects_to_provider(client):
    response = await client.get("/auth/oauth/start", params={"state": "abc"})

    url, query = parse_redirect(response)
    assert url == "https://idp.test/authorize"
    assert query["state"] == "abc"
    assert query["redirect_uri"].endswith("/auth/oauth/callback")
    assert query["prompt"] == "none"

    # The session cookie carries the state to the callback
    assert "auth_session" in response.cookies


async def test_start_generates_state(client):
    response = await client.get("/auth/oauth/start")

    _, query = parse_redirect(response)
    assert len(query["state"]) >= 32


async def test_start_force_login(client):
    response = await client.get("/auth/oauth/start", params={"force_login": "true"})

    _, query = parse_redirect(response)
    assert query["prompt"] == "select_account"


async def test_start_explicit_prompt(client):
    response = await client.get("/auth/oauth/start", params={"prompt": "consent"})

    _, query = parse_redirect(response)
    assert query["prompt"] == "consent"


async def test_start_with_pkce(client):
    response = await client.get("/auth/oauth/start", params={
        "code_challenge": compute_code_challenge(VERIFIER),
        "code_challenge_method": "S256"
    })

    url, _ = parse_redirect(response)
    assert url == "https://idp.test/authorize"


async def test_start_unsupported_challenge_method(client):
    response = await client.get("/auth/oauth/start", params={
        "code_challenge": "whatever",
        "code_challenge_method": "S512"
    })

    url, query = parse_redirect(response)
    assert url == "behaviortracker://auth-error"
    assert query == {"error": "invalid_request"}
