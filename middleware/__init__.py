"""
Middleware package for the course discovery backend.

Cross-cutting request concerns (request ids, access logging) live here.
"""

from .request_context import RequestContextMiddleware, create_request_context_config

__all__ = [
    'RequestContextMiddleware',
    'create_request_context_config'
]
