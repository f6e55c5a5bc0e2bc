import os
import sys

import psycopg
from psycopg import sql

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)) + '/..')

from settings import settings

# uuid is the only lookup key; (owner_tag, ts, uuid) backs range queries
# and cursor pagination in both directions.
DDL = '''
CREATE TABLE IF NOT EXISTS {table} (
    uuid TEXT PRIMARY KEY,
    owner_tag TEXT NOT NULL,
    ts BIGINT NOT NULL,
    payload JSONB NOT NULL DEFAULT '{{}}'::jsonb
);

CREATE INDEX IF NOT EXISTS {index} ON {table} (owner_tag, ts, uuid);
'''

table = settings.table_name
print('Connecting to', settings.db_url)
with psycopg.connect(settings.db_url, connect_timeout=settings.db_connect_timeout) as conn:
    with conn.cursor() as cur:
        cur.execute(sql.SQL(DDL).format(
            table=sql.Identifier(table),
            index=sql.Identifier(f"idx_{table}_owner_ts"),
        ))
    conn.commit()
print('DDL applied to', table)
