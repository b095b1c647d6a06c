"""Fixtures for tests that need a real async database session."""

import pytest_asyncio
from sqlalchemy import event
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from payplan.models import Base, BinaryNode, NodePosition, User

SPONSOR_ID = 1
INVESTOR_ID = 2


@pytest_asyncio.fixture
async def db_session_maker():
    """
    Session factory bound to a fresh in-memory database.

    Seeds a sponsor (one direct referral, binary root) and an investor
    placed on the sponsor's left leg.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
    )

    # pysqlite driver needs explicit BEGIN for SAVEPOINT to work
    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    maker = async_sessionmaker(engine, expire_on_commit=False)

    async with maker() as session:
        session.add_all(
            [
                User(id=SPONSOR_ID, username="sponsor", direct_count=1),
                User(id=INVESTOR_ID, username="investor", sponsor_id=SPONSOR_ID),
            ]
        )
        await session.flush()
        session.add_all(
            [
                BinaryNode(
                    user_id=SPONSOR_ID,
                    position=NodePosition.ROOT.value,
                    left_child_id=INVESTOR_ID,
                ),
                BinaryNode(
                    user_id=INVESTOR_ID,
                    parent_id=SPONSOR_ID,
                    position=NodePosition.LEFT.value,
                    level=1,
                ),
            ]
        )
        await session.commit()

    yield maker

    await engine.dispose()
