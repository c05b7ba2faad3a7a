#!/usr/bin/env python3

import logging
from argparse import ArgumentTypeError

import colorlog
import pytest

import wstore.config
import wstore.logging
from wstore.db.database import Database, make_url


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    monkeypatch.setattr(wstore.config, "CONFIG_DIR", str(tmp_path))
    return tmp_path


def write_config(path, text):
    path.write_text(text)
    return path


class test_config_path:

    def test_name(self, config_dir):
        config = write_config(config_dir / "scp-wiki.conf", "")
        assert wstore.config.config_path("scp-wiki") == str(config)

    def test_missing_default(self, config_dir):
        assert wstore.config.config_path(wstore.config.DEFAULT_CONF) is None

    def test_missing_name(self, config_dir):
        with pytest.raises(ArgumentTypeError) as excinfo:
            wstore.config.config_path("scp-wiki")
        assert "file does not exist" in str(excinfo.value)

    def test_path(self, tmp_path):
        config = write_config(tmp_path / "wiki.conf", "")
        assert wstore.config.config_path(config) == str(config)

    def test_path_without_suffix(self, tmp_path):
        with pytest.raises(ArgumentTypeError) as excinfo:
            wstore.config.config_path(tmp_path / "wiki.ini")
        assert "must end with '.conf' suffix" in str(excinfo.value)


CONFIG = """
[DEFAULT]
db-user = wiki
db-name = wiki_store

[create-wiki]
page-lock-duration = 600
domain = ${db-name}.example.com

[init-db]
upgrade =

[broken]
d = spam
"""


@pytest.fixture
def cfp(tmp_path):
    return wstore.config.ConfigParser(write_config(tmp_path / "wiki.conf", CONFIG))


class test_fetch_section:

    def test_section(self, cfp):
        assert cfp.fetch_section("create-wiki") == [
            "--db-user", "wiki", "--db-name", "wiki_store",
            "--page-lock-duration", "600", "--domain", "wiki_store.example.com",
        ]

    def test_unknown_section(self, cfp):
        assert cfp.fetch_section("no-such-script") == ["--db-user", "wiki", "--db-name", "wiki_store"]

    def test_empty_value_is_flag(self, cfp):
        assert cfp.fetch_section("init-db") == ["--db-user", "wiki", "--db-name", "wiki_store", "--upgrade"]

    def test_to_dict(self, cfp):
        assert cfp.fetch_section("alembic", to_list=False) == {"db-user": "wiki", "db-name": "wiki_store"}

    def test_short_option(self, cfp):
        with pytest.raises(ArgumentTypeError) as excinfo:
            cfp.fetch_section("broken")
        assert str(excinfo.value) == "short options are not allowed in a config file: 'd'"


def database_argparser():
    ap = wstore.config.getArgParser()
    Database.set_argparser(ap)
    ap.add_argument("--upgrade", action="store_true")
    return ap


class test_parse_args:

    def test_config_and_command_line(self, tmp_path):
        config = write_config(tmp_path / "wiki.conf", "[DEFAULT]\ndb-user = wiki\ndb-name = wiki_store\ndb-port = 5433\n")
        args = wstore.config.parse_args(database_argparser(), "init-db",
                                        argv=["--config", str(config), "--db-host", "db.example.com"])
        assert args.db_user == "wiki"
        assert args.db_name == "wiki_store"
        assert args.db_port == 5433
        assert args.db_host == "db.example.com"
        assert args.db_driver == "psycopg"
        assert args.upgrade is False

    def test_command_line_wins(self, tmp_path):
        config = write_config(tmp_path / "wiki.conf", "[init-db]\ndb-name = from_config\nupgrade =\n")
        args = wstore.config.parse_args(database_argparser(), "init-db",
                                        argv=["-c", str(config), "--db-name", "from_cli"])
        assert args.db_name == "from_cli"
        assert args.upgrade is True

    def test_no_config(self, config_dir):
        write_config(config_dir / "default.conf", "[DEFAULT]\ndb-name = wiki_store\n")
        args = wstore.config.parse_args(database_argparser(), "init-db", argv=["--no-config"])
        assert args.db_name is None

    def test_default_config(self, config_dir):
        write_config(config_dir / "default.conf", "[DEFAULT]\ndb-name = wiki_store\n")
        args = wstore.config.parse_args(database_argparser(), "init-db", argv=[])
        assert args.db_name == "wiki_store"

    def test_unknown_option_in_config(self, tmp_path):
        config = write_config(tmp_path / "wiki.conf", "[DEFAULT]\nunknown = value\n")
        args = wstore.config.parse_args(database_argparser(), "init-db", argv=["-c", str(config)])
        assert not hasattr(args, "unknown")

    @pytest.mark.parametrize("argv, unknown", [
        (["--unknown", "value"], "--unknown"),
        (["-u", "value"], "-u"),
        (["--unknown", "-u"], "--unknown -u"),
    ])
    def test_unknown_option_on_command_line(self, config_dir, capsys, argv, unknown):
        with pytest.raises(SystemExit) as excinfo:
            wstore.config.parse_args(database_argparser(), "init-db", argv=argv)
        assert excinfo.value.code == 2
        assert f"error: unrecognized arguments: {unknown}" in capsys.readouterr().err

    def test_config_and_no_config(self, tmp_path, capsys):
        config = write_config(tmp_path / "wiki.conf", "")
        with pytest.raises(SystemExit):
            wstore.config.parse_args(database_argparser(), argv=["--no-config", "--config", str(config)])
        assert "not allowed with argument --no-config" in capsys.readouterr().err


class test_logging:

    def test_level(self, config_dir):
        wstore.config.parse_args(database_argparser(), "init-db", argv=["--debug"])
        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("alembic").level == logging.WARNING

    def test_quiet(self, config_dir):
        wstore.config.parse_args(database_argparser(), "init-db", argv=["-q"])
        assert logging.getLogger().level == logging.WARNING

    def test_single_handler(self, config_dir):
        wstore.config.parse_args(database_argparser(), "init-db", argv=[])
        wstore.config.parse_args(database_argparser(), "init-db", argv=[])
        colored = [h for h in logging.getLogger().handlers if isinstance(h.formatter, colorlog.ColoredFormatter)]
        assert len(colored) == 1


class test_make_url:

    def test_url(self):
        url = make_url(user="wiki", password="secret", host="localhost", port=5432, database="wiki_store")
        assert url.drivername == "postgresql+psycopg"
        assert url.username == "wiki"
        assert url.password == "secret"
        assert url.port == 5432
        assert url.database == "wiki_store"

    def test_without_database(self):
        with pytest.raises(ValueError) as excinfo:
            make_url(user="wiki")
        assert "database name cannot be None" in str(excinfo.value)
