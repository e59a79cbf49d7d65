from .codec import EventDecodeError, decode_event, encode_event
from .config_models import AppConfig, BackendConfig, LoggingConfig, RuntimeConfig
from .recorder import LifecycleRecorder

__all__ = [
    "AppConfig",
    "BackendConfig",
    "EventDecodeError",
    "LifecycleRecorder",
    "LoggingConfig",
    "RuntimeConfig",
    "decode_event",
    "encode_event",
]
