"""Materialization strategy definitions."""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable

from sqlalchemy import Select, Table
from sqlalchemy.ext.asyncio import AsyncConnection


class SwapMode(str, Enum):
    TRANSACTION = "transaction"   # DELETE + INSERT ... SELECT in one transaction
    RENAME = "rename"             # Build a shadow table, then RENAME it over the target


# Runs against the freshly loaded table before it becomes visible; raise to abort
Validator = Callable[[AsyncConnection, Table], Awaitable[None]]


@dataclass
class FullRefreshConfig:
    """Rebuild a table in full from a query on every run.

    ``source`` must select columns labelled with the target's column names.
    """
    target: Table
    source: Select
    validate: Validator | None = None
    swap_mode: SwapMode | None = None    # None = pick from the dialect
