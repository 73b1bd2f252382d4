#  *******************************************************************************
#  Copyright (c) 2025 Eclipse Foundation and others.
#  This program and the accompanying materials are made available
#  under the terms of the Eclipse Public License 2.0
#  which is available at http://www.eclipse.org/legal/epl-v20.html
#  SPDX-License-Identifier: EPL-2.0
#  *******************************************************************************

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Literal, TextIO, TypeVar

from rich.console import Console

from rulekeeper.logging import _print_message, is_info_enabled

if TYPE_CHECKING:
    from collections.abc import Mapping

T = TypeVar("T")


class _Unset:
    """
    A marker class to indicate that a value is unset and thus should
    not be considered. This is different to None, which is a valid value
    for several protection settings.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "<UNSET>"

    def __bool__(self) -> Literal[False]:
        return False

    def __copy__(self):
        return UNSET

    def __deepcopy__(self, memo: dict[int, Any]):
        return UNSET


UNSET = _Unset()


def is_unset(value: Any) -> bool:
    """
    Returns whether the given value is an instance of Unset.
    """
    return value is UNSET


def is_set_and_valid(value: Any) -> bool:
    return not is_unset(value) and value is not None


def unwrap(value: T | None, error_message: str = "unexpected None when unwrapping value") -> T:
    """
    Will unwrap the given value or raise a ValueError if it is None

    :param value: the optional value to unwrap
    :param error_message: the error message when failing to unwrap
    :return: the value or a ValueError if it is None
    """
    if value is None:
        raise ValueError(error_message)
    else:
        return value


def query_json(expr: str, data: Mapping[str, Any]) -> Any:
    """
    Evaluates a jsonata expression on the given dictionary.
    """
    from jsonata import Jsonata  # type: ignore

    return Jsonata.jsonata(expr).evaluate(data)


class IndentingPrinter:
    def __init__(
        self,
        output: TextIO | Console,
        initial_offset: int = 0,
        spaces_per_level: int = 2,
    ):
        if isinstance(output, Console):
            self._console = output
        else:
            # a very large width prevents rich from wrapping long repository names
            self._console = Console(file=output, width=9999)

        self._initial_offset = " " * initial_offset
        self._level = 0
        self._spaces_per_level = spaces_per_level
        self._indented_line = False

    @property
    def console(self) -> Console:
        return self._console

    @property
    def current_indentation(self) -> str:
        return self._initial_offset + " " * (self._level * self._spaces_per_level)

    def print(self, text: str = "", highlight: bool = False) -> None:
        for line in text.splitlines(keepends=True):
            self._print_indentation()

            if line.endswith("\n"):
                self._console.print(line[:-1], end="", highlight=highlight)
                self.print_line_break()
            else:
                self._console.print(line, end="", highlight=highlight)

    def println(self, text: str = "", highlight: bool = False) -> None:
        self.print(text, highlight=highlight)
        self.print_line_break()

    def print_line_break(self) -> None:
        self._console.print("")
        self._indented_line = False

    def _print_indentation(self) -> None:
        if not self._indented_line:
            self._console.print(self.current_indentation, end="")
            self._indented_line = True

    def is_info_enabled(self) -> bool:
        return is_info_enabled()

    def print_info(self, msg: str) -> None:
        if is_info_enabled():
            _print_message(msg, "green", "Info", self._console)

    def print_error(self, msg: str) -> None:
        _print_message(msg, "red", "Error", self._console)

    def level_up(self) -> None:
        self._level += 1

    def level_down(self) -> None:
        if self._level == 0:
            raise RuntimeError("tried to call level_down on level 0")

        self._level -= 1
