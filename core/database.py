from sqlalchemy import DateTime, create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.sql import expression

Base = declarative_base()


def create_db_engine(database_url: str, timeout_seconds: int = 5) -> Engine:
    """
    Build the engine for the credential store.

    Every store operation is bounded by ``timeout_seconds``:
    - PostgreSQL: statement and lock timeouts set per connection
    - SQLite: busy timeout while waiting for the write lock

    SQLite transactions open with BEGIN IMMEDIATE, so writers are serialized
    the way SELECT ... FOR UPDATE serializes them on PostgreSQL.
    """
    if database_url.startswith("sqlite"):
        engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False, "timeout": timeout_seconds},
        )

        @event.listens_for(engine, "connect")
        def _on_connect(dbapi_connection, connection_record):
            # Let the "begin" hook below emit BEGIN instead of pysqlite
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys = ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def _on_begin(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

        return engine

    timeout_ms = timeout_seconds * 1000
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_timeout=timeout_seconds,
        connect_args={
            "options": f"-c statement_timeout={timeout_ms} -c lock_timeout={timeout_ms}"
        },
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


class store_now(expression.FunctionElement):
    """
    Current time on the database server.

    ``store_now()`` is NOW(); ``store_now(seconds)`` is NOW() minus that many
    seconds. Expiry checks compare against this instead of the app host clock.
    """
    type = DateTime(timezone=True)
    name = "store_now"
    inherit_cache = True


@compiles(store_now)
def _compile_store_now(element, compiler, **kw):
    if len(element.clauses):
        return "(CURRENT_TIMESTAMP - (%s) * INTERVAL '1 second')" % compiler.process(
            element.clauses, **kw
        )
    return "CURRENT_TIMESTAMP"


@compiles(store_now, "postgresql")
def _compile_store_now_pg(element, compiler, **kw):
    if len(element.clauses):
        return "(NOW() - make_interval(secs => %s))" % compiler.process(
            element.clauses, **kw
        )
    return "NOW()"


@compiles(store_now, "sqlite")
def _compile_store_now_sqlite(element, compiler, **kw):
    # Same text layout SQLAlchemy uses for DATETIME columns on SQLite
    if len(element.clauses):
        return "strftime('%%Y-%%m-%%d %%H:%%M:%%f', 'now', '-' || (%s) || ' seconds')" % (
            compiler.process(element.clauses, **kw),
        )
    return "strftime('%Y-%m-%d %H:%M:%f', 'now')"
