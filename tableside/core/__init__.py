"""
Core module initialization.
Exports configuration and logging utilities.
"""

from tableside.core.config import get_settings, Settings, EnvironmentMode, ArtifactBackend

__all__ = ["get_settings", "Settings", "EnvironmentMode", "ArtifactBackend"]
