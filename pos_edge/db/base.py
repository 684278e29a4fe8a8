from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.ext.asyncio.session import AsyncSession
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()


def make_engine(db_url: str, echo: bool = False):
    connect_args = {}
    if db_url.startswith("sqlite"):
        # wait on a locked database before the driver reports a conflict
        connect_args["timeout"] = 5
    return create_async_engine(db_url, future=True, echo=echo, connect_args=connect_args)


def make_session_factory(engine):
    return sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
