"""
Caller context for the request being served.
"""

from dataclasses import dataclass
from typing import Optional

from lifeflow_auth.exceptions import MissingUserAgent
from lifeflow_auth.kernel.identity.device import classify_user_agent
from lifeflow_auth.kernel.models.session import DeviceType

UNKNOWN_IP = "Unknown IP"


@dataclass(frozen=True)
class RequestContext:
    """
    IP address and user agent of the caller.

    The user agent is mandatory for any flow that binds or checks a
    session, so reading it without the header raises instead of defaulting.
    """

    client_ip: Optional[str] = None
    raw_user_agent: Optional[str] = None

    @property
    def ip_address(self) -> str:
        if self.client_ip is None or not self.client_ip.strip():
            return UNKNOWN_IP
        return self.client_ip.strip()

    @property
    def user_agent(self) -> str:
        if self.raw_user_agent is None:
            raise MissingUserAgent()
        return self.raw_user_agent

    @property
    def device_type(self) -> DeviceType:
        return classify_user_agent(self.user_agent)

    def fingerprint(self) -> "ClientFingerprint":
        """
        Capture what a new session records about the caller.

        Raises:
            MissingUserAgent: If the request carried no User-Agent header
        """
        user_agent = self.user_agent
        return ClientFingerprint(
            ip_address=self.ip_address,
            user_agent=user_agent,
            device_type=classify_user_agent(user_agent),
        )


@dataclass(frozen=True)
class ClientFingerprint:
    """Caller details bound to a session at creation."""

    ip_address: str
    user_agent: str
    device_type: DeviceType
