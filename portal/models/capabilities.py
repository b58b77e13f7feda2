"""One-time probe of optional schema features."""
from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import inspect


@dataclass(frozen=True)
class SchemaCapabilities:
    """What the connected database supports. Probed once per process by init_db(), never refreshed.

    password_iterations: users.pass_iterations exists, so a per-user PBKDF2 count can be stored.
    Without it every credential uses config.PBKDF2_DEFAULT_ITERATIONS.
    """

    password_iterations: bool = True


def _user_columns(sync_conn) -> set[str]:
    inspector = inspect(sync_conn)
    if not inspector.has_table("users"):
        return set()
    return {col["name"] for col in inspector.get_columns("users")}


async def probe_schema(conn) -> SchemaCapabilities:
    """Inspect the users table over an AsyncConnection."""
    columns = await conn.run_sync(_user_columns)
    return SchemaCapabilities(password_iterations="pass_iterations" in columns)
