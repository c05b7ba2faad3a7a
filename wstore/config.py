"""
Configuration of the wiki-store scripts.

Every script accepts its options on the command line and from an INI file.
The file has one section per script (named after the script without the
``.py`` suffix), and options in the ``DEFAULT`` section apply to all scripts,
which is the usual place for the ``db-*`` connection parameters::

    [DEFAULT]
    db-user = wiki
    db-name = wiki_store

    [create-wiki]
    page-lock-duration = 600

Command-line values override the values from the file. The alembic migration
environment reads the ``[alembic]`` section of the same file.
"""

import argparse
import configparser
import logging
import os
import sys
from pathlib import Path
from typing import Any

import wstore.logging

logger = logging.getLogger(__name__)

__all__ = ["ConfigParser", "config_path", "getArgParser", "parse_args"]

CONFIG_DIR = os.path.join(os.getenv("XDG_CONFIG_HOME", os.path.expanduser("~/.config/")), "wiki-store")
DEFAULT_CONF = "default"


def script_name() -> str:
    return os.path.splitext(os.path.basename(sys.argv[0]))[0]


class ConfigParser(configparser.ConfigParser):
    """
    A :py:class:`configparser.ConfigParser` bound to a single wiki-store
    config file, with ``${option}`` interpolation.
    """

    def __init__(self, configfile: str | Path, **kwargs: Any):
        kwargs.setdefault("interpolation", configparser.ExtendedInterpolation())
        super().__init__(**kwargs)
        self.configfile = configfile

    def fetch_section(self, section: str | None = None, to_list: bool = True) -> list[str] | dict[str, str]:
        """
        Read the options of one section, including those inherited from
        ``DEFAULT``. An unknown section yields only the ``DEFAULT`` options.

        :param section: the section name, by default the name of the running script
        :param to_list:
            return command-line arguments (``["--key", "value", ...]``)
            instead of a dict. An empty value produces a bare flag.
        :raises argparse.ArgumentTypeError: for single-letter option names
        """
        with open(self.configfile, encoding="utf-8") as f:
            self.read_file(f)

        if section is None:
            section = script_name()
        if not self.has_section(section):
            section = configparser.DEFAULTSECT

        options = {key: value.strip() for key, value in self.items(section)}
        for key in options:
            if len(key) == 1:
                raise argparse.ArgumentTypeError(f"short options are not allowed in a config file: '{key}'")

        if not to_list:
            return options
        args = []
        for key, value in options.items():
            args.append("--" + key)
            if value:
                args.append(value)
        return args


def config_path(name_or_path: str | Path) -> str | None:
    """
    Resolve the ``--config`` argument. A bare name is looked up as
    ``$XDG_CONFIG_HOME/wiki-store/<name>.conf``, anything else must be a path
    to a ``.conf`` file.

    :returns: the path of the file, or ``None`` when the default config does not exist
    :raises argparse.ArgumentTypeError: for a missing file or a wrong suffix
    """
    name_or_path = str(name_or_path)
    if os.sep not in name_or_path and not name_or_path.endswith(".conf"):
        path = os.path.join(CONFIG_DIR, name_or_path + ".conf")
    elif name_or_path.endswith(".conf"):
        path = os.path.abspath(os.path.expanduser(name_or_path))
    else:
        raise argparse.ArgumentTypeError(f"config filename must end with '.conf' suffix: '{name_or_path}'")

    if os.path.isfile(path):
        return path
    if name_or_path == DEFAULT_CONF:
        return None
    raise argparse.ArgumentTypeError(f"file does not exist: '{path}'")


def _add_config_arguments(argparser: argparse.ArgumentParser) -> None:
    group = argparser.add_mutually_exclusive_group()
    group.add_argument("-c", "--config", type=config_path, metavar="PATH_OR_NAME", default=DEFAULT_CONF,
            help=f"path to the config file, or a name looked up as {CONFIG_DIR}/<name>.conf (default: %(default)s)")
    group.add_argument("--no-config", dest="config", action="store_const", const=None,
            help="do not read any config file")


def getArgParser(**kwargs: Any) -> argparse.ArgumentParser:
    """
    Create an :py:class:`argparse.ArgumentParser` with the options shared by
    all scripts (config file and logging).

    :param kwargs: passed to the :py:class:`argparse.ArgumentParser` constructor
    """
    kwargs.setdefault("formatter_class", argparse.RawDescriptionHelpFormatter)
    kwargs.setdefault("allow_abbrev", False)
    kwargs["description"] = kwargs.get("description", "") + (
        "\n\nOptions starting with '--' can also be set in a config file (see -c),"
        " command-line values take precedence."
    )
    argparser = argparse.ArgumentParser(**kwargs)
    _add_config_arguments(argparser)
    wstore.logging.set_argparser(argparser)
    return argparser


def parse_args(argparser: argparse.ArgumentParser, section: str | None = None,
               argv: list[str] | None = None) -> argparse.Namespace:
    """
    Parse the command line merged over the config file, then initialize
    logging.

    :param argparser: a parser created by :py:func:`getArgParser`
    :param section: the config file section, by default the script name
    :param argv: arguments to parse instead of ``sys.argv[1:]``
    """
    cli_args = sys.argv[1:] if argv is None else argv

    # --config has to be known before the file can be read
    config_ap = argparse.ArgumentParser(add_help=False)
    _add_config_arguments(config_ap)
    args, _ = config_ap.parse_known_args(cli_args)

    config_args = []
    if args.config is not None:
        config_args = ConfigParser(args.config).fetch_section(section)

    # unknown options are tolerated in the file, but not on the command line
    args, remainder = argparser.parse_known_args(config_args + cli_args, namespace=args)
    unknown = [item for item in remainder if item.startswith("-") and item in cli_args]
    if unknown:
        argparser.error("unrecognized arguments: {}".format(" ".join(unknown)))

    wstore.logging.init(args)
    logger.debug("Parsed arguments: {}".format(args))
    return args
