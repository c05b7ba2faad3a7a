"""
Terminal logging for the wiki-store scripts.

The library modules only create loggers with ``logging.getLogger(__name__)``,
the handler is installed by :py:func:`init` when a script parses its
arguments.
"""

import logging

import colorlog

__all__ = ["terminal_handler", "set_argparser", "init"]

LOG_LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
    "critical": logging.CRITICAL,
}

# loggers of the libraries which are too verbose at the INFO level
QUIET_LOGGERS = ["alembic", "sqlalchemy.engine"]


def terminal_handler():
    """
    :returns: a :py:class:`logging.StreamHandler` with colored level names
    """
    handler = logging.StreamHandler()
    handler.setFormatter(colorlog.ColoredFormatter(
        "{log_color}{levelname:8}{reset} {name}: {message_log_color}{message}",
        log_colors={
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "bold_red",
            "CRITICAL": "bold_red",
        },
        secondary_log_colors={
            "message": {"ERROR": "bold_white", "CRITICAL": "bold_white"},
        },
        style="{",
    ))
    return handler


def set_argparser(argparser):
    """
    Add the ``--log-level``, ``--debug`` and ``--quiet`` options to an
    :py:class:`argparse.ArgumentParser`.
    """
    argparser.add_argument("--log-level", choices=LOG_LEVELS.keys(), default="info",
            help="the verbosity level for terminal logging (default: %(default)s)")
    argparser.add_argument("-d", "--debug", action="store_const", const="debug", dest="log_level",
            help="shortcut for '--log-level debug'")
    argparser.add_argument("-q", "--quiet", action="store_const", const="warning", dest="log_level",
            help="shortcut for '--log-level warning'")


def init(args):
    """
    Set the root log level from the parsed ``args`` and install the terminal
    handler. Calling it again only changes the level.
    """
    root = logging.getLogger()
    root.setLevel(LOG_LEVELS[args.log_level])
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(logging.WARNING, root.level))

    if not any(isinstance(h.formatter, colorlog.ColoredFormatter) for h in root.handlers):
        root.addHandler(terminal_handler())
