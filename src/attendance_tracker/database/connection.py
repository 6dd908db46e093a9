from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

import mysql.connector


@dataclass(frozen=True)
class DBConfig:
    host: str = "localhost"
    port: int = 3306
    user: str = "root"
    password: str = ""
    database: str = "attendance_db"
    connect_timeout: int = 10

    @classmethod
    def from_mapping(cls, db_config: Mapping[str, Any]) -> "DBConfig":
        """Build from a settings module's DB_CONFIG; missing keys keep their defaults."""
        known = {k: db_config[k] for k in cls.__dataclass_fields__ if db_config.get(k) not in (None, "")}
        if "port" in known:
            known["port"] = int(known["port"])
        if "connect_timeout" in known:
            known["connect_timeout"] = int(known["connect_timeout"])
        return cls(**known)


class DatabaseConnection:
    """Opens short-lived connections to the attendance database.

    Each store call and each feed poll gets its own connection, so one
    instance is safe to share between request threads and feed pollers.
    """

    def __init__(self, config: DBConfig):
        self._config = config

    @classmethod
    def from_mapping(cls, db_config: Mapping[str, Any]) -> "DatabaseConnection":
        return cls(DBConfig.from_mapping(db_config))

    @property
    def database(self) -> str:
        return self._config.database

    def describe(self) -> str:
        c = self._config
        return f"{c.user}@{c.host}:{c.port}/{c.database}"

    def connect(self):
        return mysql.connector.connect(database=self._config.database, **self._server_params())

    def connect_server(self):
        """Connection without a default schema, for creating the database itself."""
        return mysql.connector.connect(**self._server_params())

    def _server_params(self) -> dict[str, Any]:
        c = self._config
        return {
            "host": c.host,
            "port": c.port,
            "user": c.user,
            "password": c.password,
            "charset": "utf8mb4",
            "connection_timeout": c.connect_timeout,
            "autocommit": False,
        }
