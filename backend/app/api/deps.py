"""API Dependencies - Common dependencies for routes"""
from typing import Optional
from fastapi import Header

from ..utils.logger import get_correlation_id, set_correlation_id
from ..utils.idgen import generate_correlation_id


async def get_correlation_id_dep(
    x_correlation_id: Optional[str] = Header(None, alias="X-Correlation-Id")
) -> str:
    """
    Get or generate correlation ID for request tracing

    If client provides X-Correlation-Id, use it. Otherwise reuse the id the
    middleware bound to this request, or generate a new one.
    """
    correlation_id = x_correlation_id or get_correlation_id() or generate_correlation_id()
    set_correlation_id(correlation_id)
    return correlation_id
