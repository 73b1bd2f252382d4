#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

import logging
from typing import cast

from rich.box import Box
from rich.console import Console
from rich.logging import RichHandler
from rich.theme import Theme

TRACE = logging.DEBUG - 5

# verbose levels
# 0: warning
# 1: info
# 2: debug
# 3: trace
# 4+: trace including timestamps
_verbose_level = 0

CONSOLE_STDOUT = Console(
    theme=Theme(
        {
            "logging.level.error": "red",
            "logging.level.warning": "yellow",
            "logging.level.info": "green",
            "logging.level.debug": "cyan",
            "logging.level.trace": "magenta",
        }
    ),
    highlight=False,
)
CONSOLE_STDERR = Console(stderr=True)


class RuleKeeperLogger(logging.Logger):
    def __init__(self, name, level=logging.NOTSET):
        super().__init__(name, level)
        logging.addLevelName(TRACE, "TRACE")

    def trace(self, msg, *args, **kwargs):
        if self.isEnabledFor(TRACE):
            self._log(TRACE, msg, args, **kwargs)


logging.setLoggerClass(RuleKeeperLogger)


def _level_for_verbosity(verbose: int) -> tuple[int, bool]:
    match verbose:
        case 0:
            return logging.WARNING, False
        case 1:
            return logging.INFO, False
        case 2:
            return logging.DEBUG, False
        case 3:
            return TRACE, False
        case _:
            return TRACE, True


def init_logging(verbose: int, setup_python_logger: bool = True) -> None:
    """
    Configures the package logger according to the number of '-v' flags given on the command line.
    """
    global _verbose_level

    if verbose < 0:
        raise RuntimeError(f"negative verbose level not valid: {verbose}")

    _verbose_level = verbose
    level, show_time = _level_for_verbosity(verbose)

    if setup_python_logger is True:
        logging.basicConfig(
            level=logging.WARNING,
            format="%(message)s",
            datefmt="%X.%f",
            handlers=[
                RichHandler(
                    rich_tracebacks=True,
                    tracebacks_show_locals=verbose >= 3,
                    show_time=show_time,
                    omit_repeated_times=False,
                    console=CONSOLE_STDOUT,
                )
            ],
        )

    import rulekeeper

    logging.getLogger(rulekeeper.__name__).setLevel(level)


def get_logger(name: str) -> RuleKeeperLogger:
    return cast(RuleKeeperLogger, logging.getLogger(name))


def is_info_enabled() -> bool:
    return _verbose_level >= 1


def is_debug_enabled() -> bool:
    return _verbose_level >= 2


def is_trace_enabled() -> bool:
    return _verbose_level >= 3


def print_exception(exc: Exception) -> None:
    """
    Reports an exception that aborted a command. With debug verbosity a full traceback is
    rendered to stderr, otherwise only the message is shown.
    """
    nested = list(exc.exceptions) if isinstance(exc, ExceptionGroup) else [exc]

    if is_debug_enabled():
        import asyncio

        from rich.traceback import Traceback

        for exception in nested:
            CONSOLE_STDERR.print(
                Traceback.from_exception(
                    type(exception),
                    exception,
                    exception.__traceback__,
                    show_locals=is_trace_enabled(),
                    suppress=[asyncio],
                    width=None,
                )
            )
    else:
        for exception in nested:
            print_error(str(exception))


def print_error(msg: str, console: Console = CONSOLE_STDOUT) -> None:
    _print_message(msg, "red", "Error", console)


# fmt: off
_MESSAGE_BOX: Box = Box(
    "╷   \n"
    "│   \n"
    "│   \n"
    "│   \n"
    "│   \n"
    "│   \n"
    "│   \n"
    "╵   \n",
    ascii=False,
)
# fmt: on


def _print_message(msg: str, color: str, level: str, console: Console) -> None:
    from rich.table import Table

    table = Table(show_header=False, show_footer=False, show_lines=False, box=_MESSAGE_BOX, border_style=color)
    table.add_column("severity", justify="left", style=color)
    table.add_column("message", justify="left", no_wrap=False)
    table.add_row(level + ":", msg)
    console.print(table)
