from typing import Optional, TypedDict


class DeviceInfo(TypedDict):
    browser: str
    os: str
    device: str


def parse_user_agent(user_agent: Optional[str]) -> DeviceInfo:
    """Coarse browser / OS / device descriptor for the audit log."""
    info: DeviceInfo = {"browser": "Unknown", "os": "Unknown", "device": "Unknown"}
    if not user_agent:
        return info

    # Edge and Chrome both claim "Chrome", Chrome also claims "Safari"
    if "Edg" in user_agent:
        info["browser"] = "Edge"
    elif "Chrome" in user_agent or "CriOS" in user_agent:
        info["browser"] = "Chrome"
    elif "Firefox" in user_agent or "FxiOS" in user_agent:
        info["browser"] = "Firefox"
    elif "Safari" in user_agent:
        info["browser"] = "Safari"
    elif "MSIE" in user_agent or "Trident/" in user_agent:
        info["browser"] = "Internet Explorer"

    if "iPhone" in user_agent or "iPad" in user_agent or "iOS" in user_agent:
        info["os"] = "iOS"
    elif "Android" in user_agent:
        info["os"] = "Android"
    elif "Windows" in user_agent:
        info["os"] = "Windows"
    elif "Mac" in user_agent:
        info["os"] = "MacOS"
    elif "Linux" in user_agent:
        info["os"] = "Linux"

    if "iPad" in user_agent or "Tablet" in user_agent:
        info["device"] = "Tablet"
    elif "Mobile" in user_agent:
        info["device"] = "Mobile"
    else:
        info["device"] = "Desktop"

    return info
