import sqlite3

import pytest

from bulkquery.targets.models import ServerDefinition

USERS_DDL = "CREATE TABLE users (id INTEGER PRIMARY KEY, name TEXT NOT NULL)"


def make_sqlite_db(path, rows, ddl=USERS_DDL, table="users"):
    """Creates a SQLite file with one table and the given rows."""
    conn = sqlite3.connect(path)
    try:
        conn.execute(ddl)
        if rows:
            placeholders = ", ".join("?" for _ in rows[0])
            conn.executemany(f"INSERT INTO {table} VALUES ({placeholders})", rows)
        conn.commit()
    finally:
        conn.close()
    return path


def sqlite_server(name, directory):
    return ServerDefinition(display_name=name, connection_url=f"sqlite:///{directory}")


@pytest.fixture()
def shard_dir(tmp_path):
    """A directory acting as a SQLite 'server' with two same-shaped databases."""
    directory = tmp_path / "shards"
    directory.mkdir()
    make_sqlite_db(directory / "eu.db", [(1, "Ada"), (2, "Linus")])
    make_sqlite_db(directory / "us.db", [(1, "Grace")])
    return directory


@pytest.fixture()
def local_server(shard_dir):
    return sqlite_server("local", shard_dir)


@pytest.fixture()
def broken_server(tmp_path):
    """A server whose directory does not exist, so every connect fails."""
    return sqlite_server("broken", tmp_path / "does-not-exist")


@pytest.fixture()
def sqlite_db():
    """Factory fixture: sqlite_db(path, rows, ddl=..., table=...)."""
    return make_sqlite_db


@pytest.fixture()
def server_for():
    """Factory fixture: server_for(name, directory) -> ServerDefinition."""
    return sqlite_server
