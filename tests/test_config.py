from __future__ import annotations

import pytest

from safecrud.config import CipherConfig, DbConfig


def test_dbconfig_builds_mysql_url_with_charset() -> None:
    config = DbConfig(host="db.example", database="app", user="u", password="p", port=3306)

    url = config.sqlalchemy_url()

    assert url.render_as_string(hide_password=False) == "mysql+pymysql://u:p@db.example:3306/app?charset=utf8mb4"


def test_dbconfig_explicit_url_wins() -> None:
    config = DbConfig(url="sqlite:///example.db")

    assert config.sqlalchemy_url().get_backend_name() == "sqlite"


def test_dbconfig_requires_database_without_url() -> None:
    with pytest.raises(ValueError):
        DbConfig(host="db.example")


def test_dbconfig_rejects_non_positive_port() -> None:
    with pytest.raises(ValueError):
        DbConfig(database="app", port=0)


def test_dbconfig_repr_hides_password() -> None:
    assert "hunter2" not in repr(DbConfig(database="app", password="hunter2"))


def test_dbconfig_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SAFECRUD_DB_HOST", "mysql.internal")
    monkeypatch.setenv("SAFECRUD_DB_NAME", "crm")
    monkeypatch.setenv("SAFECRUD_DB_USER", "svc")
    monkeypatch.setenv("SAFECRUD_DB_PASSWORD", "secret")
    monkeypatch.setenv("SAFECRUD_DB_PORT", "3307")
    monkeypatch.delenv("SAFECRUD_DB_URL", raising=False)

    config = DbConfig.from_env()

    assert config.host == "mysql.internal"
    assert config.database == "crm"
    assert config.user == "svc"
    assert config.password == "secret"
    assert config.port == 3307
    assert config.url is None


@pytest.mark.parametrize(
    "kwargs",
    [
        {"secret_key": "", "iv": "0123456789abcdef"},
        {"secret_key": "k", "iv": ""},
        {"secret_key": "k", "iv": "0123456789abcdef", "method": ""},
    ],
)
def test_cipher_config_rejects_empty_values(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        CipherConfig(**kwargs)


def test_cipher_config_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("SAFECRUD_SECRET_KEY", "k")
    monkeypatch.setenv("SAFECRUD_SECRET_IV", "0123456789abcdef")
    monkeypatch.delenv("SAFECRUD_CIPHER_METHOD", raising=False)

    config = CipherConfig.from_env()

    assert config.secret_key == "k"
    assert config.iv == "0123456789abcdef"
    assert config.method == "aes-256-cbc"
    assert "0123456789abcdef" not in repr(config)
