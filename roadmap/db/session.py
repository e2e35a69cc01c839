"""
Database Session Management
SQLite for local development, PostgreSQL (or any SQLAlchemy URL) for production
"""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()

def make_engine(database_url: str) -> Engine:
    return create_engine(
        database_url,
        connect_args={"check_same_thread": False} if database_url.startswith("sqlite") else {}
    )

def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)

def init_db(engine: Engine):
    """Initialize database tables"""
    # models must be imported so their tables register on Base.metadata
    from roadmap.db import models  # noqa: F401
    Base.metadata.create_all(bind=engine)
