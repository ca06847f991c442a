# app/core/supabase_client.py
from supabase import Client, ClientOptions, create_client

from app.core.config import Settings


def supabase_public(settings: Settings) -> Client:
    """
    Create a short-lived Supabase client with the anon/public key.

    Use cases:
      - password sign-in / sign-up
      - set_session / refresh_session on client-held tokens
      - resending confirmation emails

    The client neither persists nor auto-refreshes its session, so a
    session set on it dies with the request that created it.
    """
    return create_client(
        settings.SUPABASE_URL,
        settings.SUPABASE_KEY,
        options=ClientOptions(
            auto_refresh_token=False,
            persist_session=False,
        ),
    )


def supabase_admin(settings: Settings) -> Client:
    """
    Create a Supabase client with the service role key.

    Use cases:
      - verifying bearer tokens (auth.get_user)
      - admin Auth operations (create/delete/update/list users)
      - uploading to / signing URLs on the private bucket

    WARNING:
      - Never expose service role key to frontend.
      - Only backend should call this.
    """
    if not settings.SUPABASE_SERVICE_ROLE_KEY:
        raise RuntimeError("Missing SUPABASE_SERVICE_ROLE_KEY in .env")
    return create_client(
        settings.SUPABASE_URL,
        settings.SUPABASE_SERVICE_ROLE_KEY,
        options=ClientOptions(
            auto_refresh_token=False,
            persist_session=False,
        ),
    )
