"""Computed fields ("appends") resolved after a list or export fetch.

Usage:
    from resourceforge.appends import append

    @append("Contact", "initials")
    async def contact_initials(ctx, row):
        return "".join(part[:1].upper() for part in (row.get("name") or "").split())
"""

from resourceforge.appends.registry import AppendFn, AppendRegistry, append
from resourceforge.appends.service import AppendService

__all__ = [
    "AppendFn",
    "AppendRegistry",
    "AppendService",
    "append",
]
