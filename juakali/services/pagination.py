# JUAKALI/backend/juakali/services/pagination.py

import math
from typing import Dict, List, Tuple

from sqlalchemy.orm import Query


def page_offset(page: int, limit: int) -> int:
    return (page - 1) * limit


def build_pagination(page: int, limit: int, total: int) -> Dict[str, int]:
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "pages": math.ceil(total / limit) if limit else 0,
    }


def paginate(query: Query, page: int, limit: int, count_query: Query = None) -> Tuple[List, Dict[str, int]]:
    """Runs the COUNT and the page query of ``query``.

    ``count_query`` can be given when the listing query carries joins or
    extra columns that the count should not.
    """
    total = (count_query if count_query is not None else query.order_by(None)).count()
    items = query.offset(page_offset(page, limit)).limit(limit).all()
    return items, build_pagination(page, limit, total)
