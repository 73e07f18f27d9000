from django.conf import settings
from rest_framework.pagination import PageNumberPagination
from rest_framework.response import Response


class PagePagination(PageNumberPagination):
    """?page=&limit= pagination answering {<results_key>: [...], "pagination": {...}}."""
    page_size_query_param = 'limit'
    max_page_size = 100
    results_key = 'results'

    def __init__(self, results_key=None, page_size=None):
        if results_key:
            self.results_key = results_key
        self.page_size = page_size or getattr(settings, 'ITEMS_PAGE_SIZE', 12)

    def get_paginated_response(self, data):
        return Response({
            self.results_key: data,
            'pagination': {
                'current': self.page.number,
                'total': self.page.paginator.num_pages,
                'count': self.page.paginator.count,
                'hasNext': self.page.has_next(),
                'hasPrev': self.page.has_previous(),
            },
        })
