"""Materialization engine — replaces a table's contents without an empty window."""

from __future__ import annotations
import logging

from sqlalchemy import MetaData, Table, delete, func, insert, inspect, select, text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from larder.materializations.strategies import FullRefreshConfig, SwapMode

logger = logging.getLogger("larder.materializations")

# DDL on these dialects commits implicitly, so the swap has to be a rename
_NON_TRANSACTIONAL_DDL = ("mysql", "mariadb")


class MaterializationEngine:
    """Executes full-refresh materializations against an async SQLAlchemy engine."""

    def __init__(self, engine: AsyncEngine):
        self.engine = engine
        self.dialect = engine.dialect.name

    def swap_mode(self, config: FullRefreshConfig) -> SwapMode:
        if config.swap_mode is not None:
            return config.swap_mode
        if self.dialect in _NON_TRANSACTIONAL_DDL:
            return SwapMode.RENAME
        return SwapMode.TRANSACTION

    async def materialize(self, config: FullRefreshConfig) -> dict:
        """Replace ``config.target`` with the rows of ``config.source``. Returns stats."""
        mode = self.swap_mode(config)
        handler = {
            SwapMode.TRANSACTION: self._replace_in_transaction,
            SwapMode.RENAME: self._replace_by_rename,
        }[mode]

        stats = await handler(config)
        logger.debug(f"Materialized {config.target.name}: swap={mode.value}, rows={stats['rows']}")
        return stats

    # ─── Transactional replace ───

    async def _replace_in_transaction(self, config: FullRefreshConfig) -> dict:
        target = config.target

        # Readers keep seeing the committed rows until this block commits
        async with self.engine.begin() as conn:
            await conn.execute(delete(target))
            await conn.execute(self._insert_from(target, config))
            if config.validate:
                await config.validate(conn, target)
            count = await self._count_rows(conn, target)

        return {"strategy": "full_refresh", "swap": SwapMode.TRANSACTION.value,
                "table": target.name, "rows": count}

    # ─── Shadow table + rename ───

    async def _replace_by_rename(self, config: FullRefreshConfig) -> dict:
        target = config.target
        shadow = self._shadow_table(target)
        old_name = f"{target.name}__old"

        async with self.engine.begin() as conn:
            await conn.execute(text(f"DROP TABLE IF EXISTS {self._quote(old_name)}"))
            await conn.run_sync(shadow.drop, checkfirst=True)
            await conn.run_sync(shadow.create)

            try:
                await conn.execute(self._insert_from(shadow, config))
                if config.validate:
                    await config.validate(conn, shadow)
            except Exception:
                await conn.run_sync(shadow.drop, checkfirst=True)
                raise

            count = await self._count_rows(conn, shadow)

            if await self._table_exists(conn, target.name):
                await conn.execute(text(
                    f"RENAME TABLE {self._quote(target.name)} TO {self._quote(old_name)}, "
                    f"{self._quote(shadow.name)} TO {self._quote(target.name)}"
                ))
                await conn.execute(text(f"DROP TABLE {self._quote(old_name)}"))
            else:
                await conn.execute(text(
                    f"RENAME TABLE {self._quote(shadow.name)} TO {self._quote(target.name)}"
                ))

        return {"strategy": "full_refresh", "swap": SwapMode.RENAME.value,
                "table": target.name, "rows": count}

    # ─── SQL helpers ───

    def _insert_from(self, table: Table, config: FullRefreshConfig):
        columns = [c.name for c in config.source.selected_columns]
        return insert(table).from_select(columns, config.source)

    def _shadow_table(self, target: Table) -> Table:
        return target.to_metadata(MetaData(), name=f"{target.name}__shadow")

    def _quote(self, name: str) -> str:
        return self.engine.dialect.identifier_preparer.quote(name)

    async def _count_rows(self, conn: AsyncConnection, table: Table) -> int:
        result = await conn.execute(select(func.count()).select_from(table))
        return result.scalar_one()

    async def _table_exists(self, conn: AsyncConnection, name: str) -> bool:
        return await conn.run_sync(lambda sync_conn: inspect(sync_conn).has_table(name))
