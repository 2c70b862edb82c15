"""Page-count resolution shared by paginated vendor endpoints."""

import math
import logging

logger = logging.getLogger(__name__)


def resolve_page_count(
    total: int | None,
    pages: int | None,
    page_size: int,
    max_pages: int,
) -> int:
    """Return how many pages to request.

    Vendors sometimes report ``pages == 0`` alongside a positive ``total``;
    the count is then derived from ``total``. The result is capped at
    ``max_pages``.
    """
    total = total or 0
    pages = pages or 0
    if pages <= 0 and total > 0:
        pages = math.ceil(total / page_size)
    if pages > max_pages:
        logger.warning(
            "Vendor reports %d pages, fetching only the first %d", pages, max_pages
        )
        pages = max_pages
    return max(pages, 0)


def is_last_page(page_records: int, fetched: int, total: int | None, page_size: int) -> bool:
    """True once the reported total is reached or a page comes back empty.

    Without a usable total, a short page also ends the listing.
    """
    if page_records == 0:
        return True
    if total:
        return fetched >= total
    return page_records < page_size
