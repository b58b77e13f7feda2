"""Shared API utilities."""

from portal.services.sessions import UserIdentity


def user_payload(user: UserIdentity) -> dict:
    """Public view of the current user. Never includes credential material."""
    return {
        "id": user.id,
        "username": user.username,
        "email": user.email,
        "role": user.role,
        "alias_limit": user.alias_limit,
    }
