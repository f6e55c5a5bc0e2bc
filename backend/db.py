"""
PostgreSQL connections for the record store.

Every storage call opens its own connection and closes it when the `with`
block ends, so no connection state is shared between requests.

`RecordRepo` takes the factory as its `conn_factory` argument rather than
importing `get_conn` at call time. Tests pass a fake connection that
records the composed SQL, and a pooled factory can be dropped in later
without touching the repo.
"""

import psycopg
from settings import settings


def get_conn() -> psycopg.Connection:
    """Open a connection to `settings.db_url`.

    Fails after `settings.db_connect_timeout` seconds when the server is
    unreachable; `/health` surfaces that error.
    """

    return psycopg.connect(settings.db_url, connect_timeout=settings.db_connect_timeout)
