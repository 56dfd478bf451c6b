"""
database.py - Engine and Session Factory for the Storage Engine

PURPOSE:
    Builds the SQLAlchemy engine and session factory shared by the inventory
    service. Every stock-affecting write goes through a session created here,
    so this module decides how transactions begin and how concurrent writers
    are serialized.

TRANSACTION MODEL:
    - PostgreSQL (default): READ COMMITTED. `UPDATE ... SET stock = stock + n`
      takes a row lock held until commit, so concurrent increments on the same
      product queue behind each other and no update is lost.
    - SQLite (local runs and tests): pysqlite's implicit transaction handling
      is switched off and every transaction starts with BEGIN IMMEDIATE, which
      takes the write lock up front. A second writer waits on the busy timeout
      instead of failing mid-transaction.

USAGE:
    engine = make_engine(settings.sqlalchemy_url)
    SessionLocal = make_session_factory(engine)
    init_db(engine)
"""

import logging

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

logger = logging.getLogger(__name__)

# Seconds a SQLite writer waits for the write lock before giving up
SQLITE_BUSY_TIMEOUT = 30

Base = declarative_base()


def make_engine(url: str, echo: bool = False) -> Engine:
    """Create an engine with transactional write serialization."""
    if url.startswith("sqlite"):
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"timeout": SQLITE_BUSY_TIMEOUT, "check_same_thread": False},
        )
        _use_immediate_transactions(engine)
    else:
        engine = create_engine(url, echo=echo, pool_pre_ping=True)

    logger.info(f"Database engine created for dialect {engine.dialect.name}")
    return engine


def _use_immediate_transactions(engine: Engine) -> None:
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def make_session_factory(engine: Engine) -> sessionmaker:
    """Session factory whose objects stay readable after commit."""
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(engine: Engine) -> None:
    """Create all tables registered on Base (import the models module first)."""
    logger.info("Initializing database...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database initialized")

