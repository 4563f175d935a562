"""
Database engine + session factory.

Always initializes — defaults to SQLite for local dev, Postgres in production.
get_session() always returns a real session.
"""
from sqlalchemy import create_engine, event
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import sessionmaker, DeclarativeBase

from inbox.config import DATABASE_URL


class Base(DeclarativeBase):
    pass


def enable_sqlite_savepoints(engine):
    """
    Let SQLAlchemy own BEGIN on pysqlite so SAVEPOINT / ROLLBACK TO work.

    The identity resolver inserts customers inside a nested transaction;
    without this the driver's implicit transaction handling breaks it.
    """
    @event.listens_for(engine, 'connect')
    def _on_connect(dbapi_conn, connection_record):
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()

    @event.listens_for(engine, 'begin')
    def _on_begin(conn):
        conn.exec_driver_sql('BEGIN')

    return engine


def make_engine(url):
    # Railway injects postgres:// but SQLAlchemy 2.x requires postgresql://
    url = url.replace('postgres://', 'postgresql://', 1)

    # SQLite needs different engine kwargs than Postgres
    if url.startswith('sqlite'):
        return enable_sqlite_savepoints(
            create_engine(url, connect_args={'check_same_thread': False})
        )
    return create_engine(url, pool_pre_ping=True, pool_size=5, max_overflow=10)


engine = make_engine(DATABASE_URL)

SessionLocal = sessionmaker(bind=engine)


def get_session():
    """Return a new DB session."""
    return SessionLocal()


def upsert_insert(session, model):
    """
    Dialect-specific INSERT that supports ON CONFLICT for the session's bind.

    Postgres in production, SQLite in dev/tests; both expose
    on_conflict_do_update / on_conflict_do_nothing and RETURNING.
    """
    dialect = session.get_bind().dialect.name
    if dialect == 'postgresql':
        return postgresql.insert(model)
    if dialect == 'sqlite':
        return sqlite.insert(model)
    raise NotImplementedError(f"ON CONFLICT upserts are not supported on '{dialect}'")


# Import models so Base.metadata knows about them (required for SQLAlchemy).
# Schema is managed by Alembic — no init_db() call in production.
MODEL_MODULES = [
    'inbox.models.tenant',
    'inbox.models.post',
    'inbox.models.offering',
    'inbox.models.customer',
    'inbox.models.interaction',
    'inbox.models.tenant_stats',
]


def import_models():
    import importlib
    for name in MODEL_MODULES:
        importlib.import_module(name)
