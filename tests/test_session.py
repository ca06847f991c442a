from app.core.identity import AuthSession
from app.core.session import (
    ACCESS_TOKEN_COOKIE,
    REFRESH_TOKEN_COOKIE,
    Authenticated,
    Unauthenticated,
    UnauthenticatedReason,
    bearer_token,
    resolve_credentials,
)


def test_bearer_token_parsing():
    assert bearer_token("Bearer abc") == "abc"
    assert bearer_token("bearer  abc ") == "abc"
    assert bearer_token("Basic abc") is None
    assert bearer_token("Bearer ") is None
    assert bearer_token(None) is None


def test_no_credentials(provider):
    result = resolve_credentials(provider, None, {})
    assert isinstance(result, Unauthenticated)
    assert result.reason is UnauthenticatedReason.NO_CREDENTIALS


def test_valid_bearer(provider):
    identity = provider.add_account("a@example.com")
    session = provider.issue_session(identity.id)

    result = resolve_credentials(provider, f"Bearer {session.access_token}", {})

    assert isinstance(result, Authenticated)
    assert result.identity.id == identity.id
    assert result.source == "bearer"


def test_invalid_bearer_does_not_fall_back_to_cookies(provider):
    identity = provider.add_account("a@example.com")
    session = provider.issue_session(identity.id)
    cookies = {
        ACCESS_TOKEN_COOKIE: session.access_token,
        REFRESH_TOKEN_COOKIE: session.refresh_token,
    }

    result = resolve_credentials(provider, "Bearer not-a-token", cookies)

    assert isinstance(result, Unauthenticated)
    assert result.reason is UnauthenticatedReason.INVALID_TOKEN


def test_malformed_bearer_is_invalid_token(provider):
    result = resolve_credentials(provider, "Bearer malformed.jwt", {})
    assert isinstance(result, Unauthenticated)
    assert result.reason is UnauthenticatedReason.INVALID_TOKEN


def test_cookie_pair_without_rotation(provider):
    identity = provider.add_account("a@example.com")
    session = provider.issue_session(identity.id)
    cookies = {
        ACCESS_TOKEN_COOKIE: session.access_token,
        REFRESH_TOKEN_COOKIE: session.refresh_token,
    }

    result = resolve_credentials(provider, None, cookies)

    assert isinstance(result, Authenticated)
    assert result.source == "cookie"
    assert result.rotated_session is None


def test_cookie_pair_with_rotation(provider):
    identity = provider.add_account("a@example.com")
    session = provider.issue_session(identity.id)
    fresh = AuthSession(access_token="rotated", refresh_token="rotated-r", user_id=identity.id)
    provider.rotations[session.access_token] = fresh
    cookies = {
        ACCESS_TOKEN_COOKIE: session.access_token,
        REFRESH_TOKEN_COOKIE: session.refresh_token,
    }

    result = resolve_credentials(provider, None, cookies)

    assert isinstance(result, Authenticated)
    assert result.rotated_session == fresh


def test_rejected_cookie_pair_is_no_session(provider):
    cookies = {ACCESS_TOKEN_COOKIE: "stale", REFRESH_TOKEN_COOKIE: "stale"}
    result = resolve_credentials(provider, None, cookies)
    assert isinstance(result, Unauthenticated)
    assert result.reason is UnauthenticatedReason.NO_SESSION


def test_single_cookie_is_not_a_session(provider):
    result = resolve_credentials(provider, None, {ACCESS_TOKEN_COOKIE: "x"})
    assert isinstance(result, Unauthenticated)
    assert result.reason is UnauthenticatedReason.NO_CREDENTIALS
