"""Resolves requested appends for a page of rows."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING, Any

from resourceforge.appends.registry import AppendRegistry
from resourceforge.errors import BadRequest

if TYPE_CHECKING:
    from resourceforge.resources.context import RequestContext

logger = logging.getLogger(__name__)


class AppendService:
    """Fans appends out over rows and gathers the results.

    Rows are resolved concurrently; each row gets every requested append
    as an extra key, and the output keeps the input order.
    """

    async def resolve(
        self,
        ctx: RequestContext,
        rows: list[dict[str, Any]],
        names: list[str],
    ) -> list[dict[str, Any]]:
        """Attach the named appends to each row.

        Raises:
            BadRequest: If a name is not registered for the entity
        """
        if not names or not rows:
            return rows

        entity_name = ctx.entity.name
        unknown = [n for n in names if not AppendRegistry.is_registered(entity_name, n)]
        if unknown:
            raise BadRequest(f"Unknown appends for {entity_name}: {', '.join(unknown)}")

        fns = [(name, AppendRegistry.get(entity_name, name)) for name in names]

        async def resolve_row(row: dict[str, Any]) -> dict[str, Any]:
            values = await asyncio.gather(*(fn(ctx, row) for _, fn in fns))
            return {**row, **{name: value for (name, _), value in zip(fns, values)}}

        logger.debug("Resolving appends %s for %d %s rows", names, len(rows), entity_name)
        return list(await asyncio.gather(*(resolve_row(row) for row in rows)))
