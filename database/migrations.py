"""Run Alembic migrations for a database config.

The migrations directory is a regular Alembic script location. Its env.py is
expected to use ``config.attributes["connection"]`` when present and to pass
``config.attributes["version_table"]`` to ``context.configure``.
"""

from __future__ import annotations

import argparse
import json
from typing import Any, List, Mapping, Optional, Union

from alembic import command
from alembic.config import Config as AlembicConfig

from database.config import DatabaseConfig, build_engine, config_from_env, load_config
from utils.logger import get_logger

logger = get_logger(__name__)


def migrate(config: Union[DatabaseConfig, Mapping[str, Any], str], revision: str = "head") -> None:
    db_config = load_config(config)
    engine = build_engine(db_config)
    try:
        alembic_cfg = AlembicConfig()
        alembic_cfg.set_main_option("script_location", db_config.migrations.directory)
        url = db_config.url().render_as_string(hide_password=False)
        alembic_cfg.set_main_option("sqlalchemy.url", url.replace("%", "%%"))
        alembic_cfg.attributes["version_table"] = db_config.migrations.table_name

        with engine.begin() as connection:
            alembic_cfg.attributes["connection"] = connection
            logger.info("Running migrations from %s up to %s", db_config.migrations.directory, revision)
            command.upgrade(alembic_cfg, revision)
    finally:
        engine.dispose()


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Apply Alembic migrations after loading .env variables.")
    parser.add_argument("--directory", default=None, help="Alembic script location (defaults to config value).")
    parser.add_argument("--revision", default="head", help="Target revision.")
    args = parser.parse_args(argv)

    env_config = config_from_env()
    if args.directory:
        env_config.migrations.directory = args.directory
    migrate(env_config, revision=args.revision)
    print(json.dumps({"status": "ok", "message": f"Migrated to {args.revision}."}))


if __name__ == "__main__":
    main()
