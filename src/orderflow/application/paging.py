"""Pagination helpers shared by the listing handlers."""

from __future__ import annotations

import logging
import math
from collections.abc import Sequence
from dataclasses import asdict
from typing import Any

from orderflow.application.dto import PageResult, Pagination
from orderflow.domain.exceptions import ValidationError
from orderflow.domain.model.listing import PageRequest, SortOrder

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
DEFAULT_SORT_BY = "created_at"
MAX_LIMIT = 100


def normalize_page_request(
    *,
    page: int | None,
    limit: int | None,
    sort_by: str | None,
    sort_order: str | None,
    sort_columns: frozenset[str],
    max_limit: int = MAX_LIMIT,
) -> PageRequest:
    """Build a ``PageRequest`` from raw caller input.

    Missing values take the defaults, ``limit`` is capped at ``max_limit``
    and an unknown sort column falls back to ``created_at``.
    """
    page = DEFAULT_PAGE if page is None else page
    limit = DEFAULT_LIMIT if limit is None else limit
    if page < 1:
        raise ValidationError("page must be at least 1", context={"page": page})
    if limit < 1:
        raise ValidationError("limit must be at least 1", context={"limit": limit})

    column = sort_by or DEFAULT_SORT_BY
    if column not in sort_columns:
        logger.debug("Unknown sort column, using default", extra={"sort_by": column})
        column = DEFAULT_SORT_BY

    try:
        order = SortOrder((sort_order or SortOrder.DESC.value).upper())
    except ValueError:
        raise ValidationError(
            f"Invalid sort order '{sort_order}'. Must be ASC or DESC",
            context={"sort_order": sort_order},
        ) from None

    return PageRequest(
        page=page,
        limit=min(limit, max_limit),
        sort_by=column,
        sort_order=order,
    )


def page_result(rows: Sequence[Any], total: int, request: PageRequest) -> PageResult:
    return PageResult(
        data=[asdict(row) for row in rows],
        pagination=Pagination(
            page=request.page,
            limit=request.limit,
            total_records=total,
            total_pages=math.ceil(total / request.limit) if total else 0,
        ),
    )
