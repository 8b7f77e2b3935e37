from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from streamfinder.config import Settings
from streamfinder.core.models import Base


def make_engine(database_url: str):
    if database_url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in database_url or database_url in ("sqlite://", "sqlite:///"):
            # one shared connection, otherwise every session sees an empty DB
            kwargs["poolclass"] = StaticPool
        return create_engine(database_url, **kwargs)
    return create_engine(database_url, pool_pre_ping=True)


def get_session_factory(database_url: str | None = None, *, create_tables: bool = False) -> sessionmaker:
    url = database_url or Settings.from_env().database_url
    engine = make_engine(url)
    if create_tables:
        Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, expire_on_commit=False)


def init_db(database_url: str | None = None):
    url = database_url or Settings.from_env().database_url
    Base.metadata.create_all(make_engine(url))
    print("✅ DB Schema Synchronized.")


if __name__ == "__main__":
    init_db()
