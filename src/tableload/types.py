"""Shared types for the tableload package."""

from collections.abc import Mapping
from typing import Any

Row = dict[str, Any]
RowRecord = Mapping[str, Any]
Params = tuple | list | dict
ParamsList = list[tuple] | list[list]
