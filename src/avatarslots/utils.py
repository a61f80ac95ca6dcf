import importlib.metadata
from typing import Optional

from avatarslots.constants import APP_NAME

_USER_AGENT_CACHE: Optional[str] = None


def get_app_version() -> str:
    """
    Retrieve the installed avatarslots package version.

    Returns:
        str: The installed version string, or "unknown" if it cannot be determined.
    """
    try:
        return importlib.metadata.version(APP_NAME)
    except importlib.metadata.PackageNotFoundError:
        return "unknown"


def get_user_agent() -> str:
    """
    Get the User-Agent string used for HTTP requests.

    Returns:
        The string `avatarslots/{version}`.
    """
    global _USER_AGENT_CACHE

    if _USER_AGENT_CACHE is None:
        _USER_AGENT_CACHE = f"{APP_NAME}/{get_app_version()}"

    return _USER_AGENT_CACHE
