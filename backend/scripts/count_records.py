import os
import sys

import psycopg
from psycopg import sql

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)) + '/..')

from settings import settings

# Usage: python count_records.py [owner_tag_prefix]
# e.g. "/alice:" counts every resource of user alice (no OWNER_PREFIX).
like = (sys.argv[1] if len(sys.argv) > 1 else '') + '%'

with psycopg.connect(settings.db_url) as conn:
    with conn.cursor() as cur:
        cur.execute(
            sql.SQL("SELECT owner_tag, COUNT(*) FROM {} WHERE owner_tag LIKE %s GROUP BY owner_tag ORDER BY owner_tag")
            .format(sql.Identifier(settings.table_name)),
            (like,),
        )
        for owner_tag, count in cur.fetchall():
            print(f'{owner_tag}: {count}')
