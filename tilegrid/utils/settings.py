from dataclasses import dataclass

from PySide6.QtCore import QSettings, Signal

# Defaults for settings that are accessed from multiple places.
DEFAULT_SETTINGS = {
    'base_unit': 200,  # Pixel size of one grid cell
    'gap': 10,
    'page_size': 24,  # Candidate slots probed per batch
    'virtualize_buffer': 2000,  # Pixels beyond the viewport that stay materialized
    # Directory path or http(s):// base URL. Empty = ask on startup.
    'image_source': '',
    'image_name_template': '{number}.png',  # number = slot index + 1
    'probe_workers': 8,
    'probe_timeout_s': 5.0,
    'batch_retry_base_ms': 1000,
    'batch_retry_max_ms': 30000,
    'image_load_workers': 4,
    'trace_logs': False,  # Print DEBUG flow logs
}


class Settings(QSettings):
    # Signal that shows that the setting with the given string was changes
    change = Signal(str, object, name='settingsChanged')

    def __init__(self):
        super().__init__('tilegrid', 'tilegrid')

    def setValue(self, key, value):
        super().setValue(key, value)
        self.change.emit(key, value)

# Common shared instance to ensure the Signal is also shared
settings = Settings()


def _positive_int(source, key: str) -> int:
    default = DEFAULT_SETTINGS[key]
    try:
        value = int(source.value(key, defaultValue=default, type=int))
    except (TypeError, ValueError):
        value = default
    if value <= 0:
        # Imported here to avoid a cycle: flow_log reads settings.
        from tilegrid.utils.flow_log import log_flow
        log_flow("CONFIG", f"Invalid {key}={value!r}, using default {default}",
                 level="WARNING")
        return default
    return value


@dataclass(frozen=True)
class GalleryOptions:
    """Layout and pagination options for one gallery instance."""
    base_unit: int = DEFAULT_SETTINGS['base_unit']
    gap: int = DEFAULT_SETTINGS['gap']
    page_size: int = DEFAULT_SETTINGS['page_size']
    virtualize_buffer: int = DEFAULT_SETTINGS['virtualize_buffer']
    batch_retry_base_ms: int = DEFAULT_SETTINGS['batch_retry_base_ms']
    batch_retry_max_ms: int = DEFAULT_SETTINGS['batch_retry_max_ms']

    @classmethod
    def from_settings(cls, source=None, **overrides) -> 'GalleryOptions':
        """
        Build options from a QSettings-like object.

        Non-integer or non-positive values fall back to the defaults.
        Keyword overrides win over stored settings.
        """
        source = settings if source is None else source
        values = {
            key: _positive_int(source, key)
            for key in ('base_unit', 'page_size', 'virtualize_buffer',
                        'batch_retry_base_ms', 'batch_retry_max_ms')
        }
        # A gap of 0 is a valid layout, so only negatives are rejected.
        try:
            gap = int(source.value('gap', defaultValue=DEFAULT_SETTINGS['gap'], type=int))
        except (TypeError, ValueError):
            gap = DEFAULT_SETTINGS['gap']
        values['gap'] = gap if gap >= 0 else DEFAULT_SETTINGS['gap']
        values.update({key: value for key, value in overrides.items() if value is not None})
        return cls(**values)
