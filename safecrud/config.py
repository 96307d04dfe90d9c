from __future__ import annotations

import os
from dataclasses import dataclass, field

from sqlalchemy.engine import URL, make_url

ENV_PREFIX = "SAFECRUD_"


def _env(name: str, default: str | None = None) -> str | None:
    return os.environ.get(f"{ENV_PREFIX}{name}", default)


@dataclass(frozen=True)
class DbConfig:
    """
    Connection settings, read once when the process starts.

    ``url`` takes precedence over the individual fields when set, which is how
    non-MySQL backends (e.g. SQLite in tests) are configured.
    """
    host: str = "localhost"
    database: str = ""
    user: str = ""
    password: str = field(default="", repr=False)
    charset: str = "utf8mb4"
    driver: str = "mysql+pymysql"
    port: int | None = None
    url: str | None = field(default=None, repr=False)

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if self.url is None and not self.database:
            raise ValueError("database must be set when no url is given")
        if self.port is not None and self.port <= 0:
            raise ValueError("port must be a positive integer")

    def sqlalchemy_url(self) -> URL:
        if self.url is not None:
            return make_url(self.url)
        return URL.create(
            self.driver,
            username=self.user or None,
            password=self.password or None,
            host=self.host,
            port=self.port,
            database=self.database,
            query={"charset": self.charset} if self.charset else {},
        )

    @classmethod
    def from_env(cls) -> "DbConfig":
        port = _env("DB_PORT")
        return cls(
            host=_env("DB_HOST", "localhost"),
            database=_env("DB_NAME", ""),
            user=_env("DB_USER", ""),
            password=_env("DB_PASSWORD", ""),
            charset=_env("DB_CHARSET", "utf8mb4"),
            driver=_env("DB_DRIVER", "mysql+pymysql"),
            port=int(port) if port else None,
            url=_env("DB_URL"),
        )


@dataclass(frozen=True)
class CipherConfig:
    """
    Process-wide encryption context for the field cipher.

    ``iv`` is raw IV material; only the first ``iv_length(method)`` bytes are
    used, so it must be at least that long.
    """
    secret_key: str | bytes = field(repr=False)
    iv: str | bytes = field(repr=False)
    method: str = "aes-256-cbc"

    def __post_init__(self) -> None:
        """Validate configuration parameters."""
        if not self.secret_key:
            raise ValueError("secret_key cannot be empty")
        if not self.iv:
            raise ValueError("iv cannot be empty")
        if not self.method:
            raise ValueError("method cannot be empty")

    @classmethod
    def from_env(cls) -> "CipherConfig":
        return cls(
            secret_key=_env("SECRET_KEY", ""),
            iv=_env("SECRET_IV", ""),
            method=_env("CIPHER_METHOD", "aes-256-cbc"),
        )
