"""
Feature flags.

Handlers ask a FeatureFlags object whether a flag is on; the default
implementation reads the enable_feature_* fields of Settings, so flags are
flipped through environment variables (ENABLE_FEATURE_SOYLENTI=false).
"""

from typing import Optional, Protocol

from soylenti.config import Settings, settings as default_settings

# Public flag name -> Settings field
FLAG_FIELDS = {
    "show-soylenti": "enable_feature_soylenti",
    "show-trending": "enable_feature_trending",
    "show-nosotros": "enable_feature_nosotros",
    "show-unete": "enable_feature_unete",
    "show-debug-info": "enable_feature_debug_info",
}


class FeatureFlags(Protocol):
    def is_enabled(self, name: str) -> bool:
        ...


class SettingsFeatureFlags:
    """Flags backed by Settings. Unknown flag names are off."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or default_settings

    def is_enabled(self, name: str) -> bool:
        field_name = FLAG_FIELDS.get(name)
        if field_name is None:
            return False
        return bool(getattr(self.settings, field_name, False))
