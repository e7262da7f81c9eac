"""Query parameters, construction and result shapes."""

from resourceforge.query.builder import QueryBuilder
from resourceforge.query.types import (
    DEFAULT_PER_PAGE,
    Query,
    QuerySpec,
    ResultPage,
    condition,
    group,
    parse_where,
)

__all__ = [
    "DEFAULT_PER_PAGE",
    "Query",
    "QueryBuilder",
    "QuerySpec",
    "ResultPage",
    "condition",
    "group",
    "parse_where",
]
