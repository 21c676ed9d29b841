# -*- coding: utf-8 -*-
"""
Kit Sample Editor - Version Information

Central location for all version-related constants.
Update this file when releasing new versions.
"""

# =============================================================================
# VERSION INFORMATION
# =============================================================================

VERSION_MAJOR = 0
VERSION_MINOR = 1
VERSION_PATCH = 0

# Version stage: "alpha", "beta", "rc", "release"
VERSION_STAGE = "alpha"
VERSION_STAGE_NUM = 1

if VERSION_STAGE == "release":
    VERSION = f"{VERSION_MAJOR}.{VERSION_MINOR}.{VERSION_PATCH}"
else:
    VERSION = f"{VERSION_MAJOR}.{VERSION_MINOR}.{VERSION_PATCH}-{VERSION_STAGE}.{VERSION_STAGE_NUM}"

# =============================================================================
# APPLICATION INFO
# =============================================================================

APP_NAME = "Kit Sample Editor"
APP_DESCRIPTION = "Sample kit editor for LSDj ROM images"


def get_version_string() -> str:
    """Get formatted version string for display."""
    return f"{APP_NAME} {VERSION}"


__version__ = VERSION
