from .settings import (
    Settings,
    BinanceConfig,
    FeedConfig,
    HealthConfig,
    FetchConfig,
    BufferConfig,
    LoggingConfig,
    load_settings,
)
from .preferences import Preferences, load_preferences, save_preferences
