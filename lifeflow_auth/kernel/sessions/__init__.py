"""
Session Store - server-side state of issued refresh tokens.
"""

from lifeflow_auth.kernel.sessions.session_store import SessionStore

__all__ = ["SessionStore"]
