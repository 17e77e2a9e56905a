# evote/database/session.py

import logging
from sqlalchemy import event

logger = logging.getLogger(__name__)


def configure_engine(engine):
    """Apply per-dialect connection settings needed by the voting core.

    SQLite does not enforce foreign keys unless asked to, and pysqlite defers
    BEGIN until the first write, which lets two connections read the same
    "not voted yet" state. Every transaction is started with BEGIN IMMEDIATE
    instead so the check-and-append sequence runs under the write lock.
    PostgreSQL needs nothing here: the engine locks the voter row instead, and
    IdentityStore takes an advisory lock around duplicate-face checks.
    """
    if engine.dialect.name != 'sqlite':
        return

    @event.listens_for(engine, 'connect')
    def _on_connect(dbapi_connection, connection_record):
        # Hand transaction control to the "begin" listener below
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute('PRAGMA foreign_keys=ON')
        cursor.close()

    @event.listens_for(engine, 'begin')
    def _on_begin(conn):
        conn.exec_driver_sql('BEGIN IMMEDIATE')

    logger.info("SQLite engine configured with foreign keys and immediate transactions")
