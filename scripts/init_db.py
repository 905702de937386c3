"""Create the tables and optionally promote an existing user to admin.

    python scripts/init_db.py [admin-email]
"""
import logging
import os
import sys

from padelbook.core.config import Settings
from padelbook.core.db import get_connection

BASE_DIR = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
SCHEMA_PATH = os.path.join(BASE_DIR, "scripts", "schema.sql")

logger = logging.getLogger("init_db")


def run_migration(settings: Settings) -> None:
    conn = get_connection(settings)
    try:
        with conn.cursor() as cur:
            with open(SCHEMA_PATH, "r", encoding="utf-8") as schema_file:
                cur.execute(schema_file.read())
    finally:
        conn.close()
    logger.info("Schema applied to %s@%s/%s", settings.db_user, settings.db_host, settings.db_name)


def promote_admin(settings: Settings, email: str) -> bool:
    conn = get_connection(settings)
    try:
        with conn.cursor() as cur:
            cur.execute(
                """
                INSERT INTO profiles (id, role)
                SELECT id, 'admin' FROM users WHERE email = %s
                ON CONFLICT (id) DO UPDATE SET role = 'admin'
                """,
                (email.strip().lower(),),
            )
            return cur.rowcount > 0
    finally:
        conn.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(message)s")
    settings = Settings.from_env()
    run_migration(settings)
    if len(sys.argv) > 1:
        if promote_admin(settings, sys.argv[1]):
            logger.info("%s is now an admin", sys.argv[1])
        else:
            logger.error("No user registered with email %s", sys.argv[1])
            sys.exit(1)
