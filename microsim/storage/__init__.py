"""Storage layer for user preferences."""

from .prefs import PreferenceStore, open_prefs

__all__ = ["PreferenceStore", "open_prefs"]
