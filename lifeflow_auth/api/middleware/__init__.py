"""
API middleware.
"""

from lifeflow_auth.api.middleware.request_id import RequestIdMiddleware

__all__ = ["RequestIdMiddleware"]
