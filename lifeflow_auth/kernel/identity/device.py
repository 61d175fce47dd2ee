"""
Device classification from a User-Agent header.
"""

from typing import Optional

from lifeflow_auth.kernel.models.session import DeviceType


def classify_user_agent(user_agent: Optional[str]) -> DeviceType:
    """
    Derive a coarse device class.

    "Mobile" is checked before "Tablet": many tablet agents also
    advertise Mobile and are recorded as mobile.
    """
    if not user_agent or not user_agent.strip():
        return DeviceType.UNKNOWN
    lowered = user_agent.lower()
    if "mobile" in lowered:
        return DeviceType.MOBILE
    if "tablet" in lowered:
        return DeviceType.TABLET
    return DeviceType.DESKTOP
