from .loader import ConfigError, Settings, load_settings, validate_settings
