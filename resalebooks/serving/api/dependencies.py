"""
Request dependencies: authenticated actor and the actor-bound record store.
"""

from fastapi import Depends, HTTPException, Request
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from resalebooks.config import get_settings
from resalebooks.database.connection import get_session_factory
from resalebooks.errors import StoreUnavailable
from resalebooks.store import RecordStore, SqlRecordStore

settings = get_settings()


def get_actor_id(request: Request) -> str:
    """Actor id from the configured header; 401 when absent"""
    header = settings.security.actor_header
    actor_id = (request.headers.get(header) or "").strip()
    if not actor_id:
        raise HTTPException(status_code=401, detail=f"Missing {header} header")
    return actor_id


def get_session_factory_dependency() -> async_sessionmaker[AsyncSession]:
    try:
        return get_session_factory()
    except RuntimeError as e:
        raise StoreUnavailable(str(e), operation="open session") from e


def get_store(
    actor_id: str = Depends(get_actor_id),
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory_dependency),
) -> RecordStore:
    return SqlRecordStore(session_factory, actor_id)
