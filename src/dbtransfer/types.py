"""Shared types for the dbtransfer package."""

from typing import Callable

Value = None | int | float | str | bytes
Record = dict[str, Value]
Params = tuple | list | dict
ParamsList = list[tuple] | list[list]
Transform = Callable[[Record], Record]
