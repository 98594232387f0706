from __future__ import annotations

import os
import re
from typing import Any, Dict, Mapping, Optional, Union

import sqlalchemy as sa
from pydantic import BaseModel, ConfigDict, Field, field_validator
from sqlalchemy.engine import URL, Engine, make_url

from utils.env_loader import load_environments
from utils.logger import get_logger

logger = get_logger(__name__)


_DRIVERS = {
    "pg": "postgresql+psycopg",
    "postgres": "postgresql+psycopg",
    "postgresql": "postgresql+psycopg",
    "psql": "postgresql+psycopg",
    "mysql": "mysql+pymysql",
    "mysql2": "mysql+pymysql",
    "sqlite": "sqlite",
    "sqlite3": "sqlite",
}

_DEPRECATED_URI = re.compile(r"^(mysql|psql)(?:://)(.*)(?::)(.*)@(.*)(?::)(\d*)(?:/)(.*)$")
_URI_SCHEMA = re.compile(r"^[^:]+://[^/]+/(\w+)$")


class ConnectionConfig(BaseModel):
    # Extra keys are driver options (ssl, charset, ...) forwarded as connect_args.
    model_config = ConfigDict(extra="allow")

    host: Optional[str] = None
    port: Optional[int] = None
    user: Optional[str] = None
    password: Optional[str] = None
    database: Optional[str] = None

    def connect_args(self) -> Dict[str, Any]:
        return dict(self.model_extra or {})


class PoolConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    min: int = Field(default=2, ge=0)
    max: int = Field(default=10, ge=1)
    acquire_timeout_millis: int = Field(default=30_000, gt=0, alias="acquireTimeoutMillis")


class MigrationsConfig(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    directory: str = "migrations"
    table_name: str = Field(default="alembic_version", alias="tableName")


class InstrumentationConfig(BaseModel):
    enabled: bool = False


class DatabaseConfig(BaseModel):
    client: str
    connection: Union[ConnectionConfig, str] = Field(default_factory=ConnectionConfig)
    pool: PoolConfig = Field(default_factory=PoolConfig)
    migrations: MigrationsConfig = Field(default_factory=MigrationsConfig)
    instrumentation: InstrumentationConfig = Field(default_factory=InstrumentationConfig)
    debug: bool = False

    @field_validator("client")
    @classmethod
    def _normalize_client(cls, value: str) -> str:
        client = value.strip().lower()
        if not client:
            raise ValueError("client is required")
        return client

    @property
    def drivername(self) -> str:
        return _DRIVERS.get(self.client, self.client)

    @property
    def is_sqlite(self) -> bool:
        return self.drivername.split("+", 1)[0] == "sqlite"

    def schema_name(self) -> str:
        if isinstance(self.connection, str):
            database = make_url(self.connection).database
        else:
            database = self.connection.database
        if not database:
            raise ValueError("Invalid database schema in database config")
        return database

    def url(self) -> URL:
        if isinstance(self.connection, str):
            return make_url(self.connection).set(drivername=self.drivername)
        return URL.create(
            self.drivername,
            username=self.connection.user,
            password=self.connection.password,
            host=self.connection.host,
            port=self.connection.port,
            database=self.connection.database,
        )

    def engine_options(self) -> Dict[str, Any]:
        options: Dict[str, Any] = {"echo": self.debug}
        if not isinstance(self.connection, str):
            connect_args = self.connection.connect_args()
            if connect_args:
                options["connect_args"] = connect_args
        if not self.is_sqlite:
            options.update(
                pool_size=self.pool.max,
                max_overflow=0,
                pool_timeout=self.pool.acquire_timeout_millis / 1000,
                pool_pre_ping=True,
            )
        return options


def build_engine(config: DatabaseConfig) -> Engine:
    return sa.create_engine(config.url(), **config.engine_options())


def load_config(value: Union[DatabaseConfig, Mapping[str, Any], str]) -> DatabaseConfig:
    if isinstance(value, DatabaseConfig):
        return value
    if isinstance(value, str):
        return DatabaseConfig.model_validate(build_default_config({}, value))
    return DatabaseConfig.model_validate(dict(value))


def build_default_config(default_config: Mapping[str, Any], config_str: str) -> Dict[str, Any]:
    """Convert a deprecated `<mysql|psql>://user:password@host:port/database` string to a config mapping."""
    match = _DEPRECATED_URI.match(config_str)
    if match is None:
        raise ValueError(f"Invalid database config string: {config_str}")

    client, user, password, host, port, database = match.groups()
    return {
        **default_config,
        "client": client,
        "connection": {
            **(default_config.get("connection") or {}),
            "user": user,
            "password": password,
            "host": host,
            "port": int(port) if port else None,
            "database": database,
        },
    }


def parse_database_type(uri: str) -> str:
    return uri.split(":")[0]


def parse_database_schema(uri: str) -> str:
    match = _URI_SCHEMA.match(uri)
    if match is None:
        raise ValueError(f"Invalid database schema in database URI: {uri}")
    return match.group(1)


def _env_flag(name: str) -> bool:
    return (os.getenv(name) or "").strip().lower() in {"1", "true", "yes", "on"}


def config_from_env() -> DatabaseConfig:
    loaded = load_environments()
    if loaded:
        logger.debug("Loaded %s from .env", ", ".join(sorted(loaded)))
    uri = os.getenv("DATABASE_URI")
    if uri:
        return load_config(uri)

    engine = (os.getenv("DB_ENGINE") or "postgres").strip().lower()
    pool = PoolConfig(
        min=int(os.getenv("DB_POOL_MIN", "2")),
        max=int(os.getenv("DB_POOL_MAX", "10")),
    )
    if engine in {"sqlite", "sqlite3"}:
        db_path = os.getenv("SQLITE_DB_PATH")
        if not db_path:
            raise ValueError("SQLITE_DB_PATH is required for sqlite engine")
        return DatabaseConfig(
            client="sqlite",
            connection=ConnectionConfig(database=db_path),
            pool=pool,
            debug=_env_flag("DB_DEBUG"),
        )

    host = os.getenv("DB_HOST")
    dbname = os.getenv("DB_NAME")
    user = os.getenv("DB_USER")
    password = os.getenv("DB_PASSWORD")
    if not host:
        raise ValueError("DB_HOST is required")
    if not dbname:
        raise ValueError("DB_NAME is required")
    if not user:
        raise ValueError("DB_USER is required")
    if not password:
        raise ValueError("DB_PASSWORD is required")

    default_port = "3306" if engine in {"mysql", "mysql2"} else "5432"
    return DatabaseConfig(
        client=engine,
        connection=ConnectionConfig(
            host=host,
            port=int(os.getenv("DB_PORT", default_port)),
            database=dbname,
            user=user,
            password=password,
        ),
        pool=pool,
        debug=_env_flag("DB_DEBUG"),
    )
