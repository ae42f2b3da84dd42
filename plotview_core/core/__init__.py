from .config import DEFAULT_TITLE, ViewerConfig, config_from_env, load_config_file, resolve_config
from .file_watcher import DEFAULT_DEBOUNCE_S, FileWatcher, WatchSetupError
from .signal_channel import WatchSignalChannel
from .viewer_runtime import ViewerRunResult, ViewerRuntime, ViewerState

__all__ = [
    "DEFAULT_DEBOUNCE_S",
    "DEFAULT_TITLE",
    "FileWatcher",
    "ViewerConfig",
    "ViewerRunResult",
    "ViewerRuntime",
    "ViewerState",
    "WatchSetupError",
    "WatchSignalChannel",
    "config_from_env",
    "load_config_file",
    "resolve_config",
]
