"""
LifeFlow authentication service.

Issues, validates and revokes bearer credentials and tracks the
server-side sessions bound to each refresh token.
"""

__version__ = "1.0.0"
