# hms_core/common/api/pagination.py
from __future__ import annotations

from django.conf import settings
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class DefaultPagination(PageNumberPagination):
    """?page=N&page_size=M, sizes bounded by HMS_PAGE_SIZE / HMS_MAX_PAGE_SIZE."""

    page_size_query_param = "page_size"

    def __init__(self):
        self.page_size = getattr(settings, "HMS_PAGE_SIZE", 20)
        self.max_page_size = getattr(settings, "HMS_MAX_PAGE_SIZE", 200)


def paginate(request, queryset, serializer_class) -> Response:
    """Page a queryset and answer with {count, next, previous, results}."""
    paginator = DefaultPagination()
    page = paginator.paginate_queryset(queryset, request)
    if page is None:
        return Response(serializer_class(queryset, many=True).data)
    return paginator.get_paginated_response(serializer_class(page, many=True).data)


def clamp_limit(raw, *, default: int, maximum: int) -> int:
    """?limit= parsing for non-paginated lists (recent items, timelines)."""
    try:
        n = int(raw) if raw not in (None, "") else default
    except (TypeError, ValueError):
        n = default
    return max(1, min(n, maximum))
