"""User preferences and privacy controls."""
from .preferences import UserPreferences, PreferenceStore
from .privacy_controls import PrivacyControls, DATA_USAGE_EXPLANATION

__all__ = [
    "UserPreferences",
    "PreferenceStore",
    "PrivacyControls",
    "DATA_USAGE_EXPLANATION",
]
