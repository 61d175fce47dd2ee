"""
Concrete collaborators: identity persistence, one-time codes and mail delivery.
"""

from lifeflow_auth.services.identity_store import SqlIdentityStore
from lifeflow_auth.services.otp_service import TotpOtpService
from lifeflow_auth.services.email_service import LoggingEmailSink, SmtpEmailSink, build_email_sink

__all__ = [
    "SqlIdentityStore",
    "TotpOtpService",
    "LoggingEmailSink",
    "SmtpEmailSink",
    "build_email_sink",
]
