"""Framework-independent resource handlers."""

from resourceforge.resources.context import RequestContext
from resourceforge.resources.export import ExportFile, SpreadsheetExporter
from resourceforge.resources.handlers import STAT_PALETTE, ResourceHandlers

__all__ = [
    "ExportFile",
    "RequestContext",
    "ResourceHandlers",
    "STAT_PALETTE",
    "SpreadsheetExporter",
]
