from .setup import LaunchLog, build_info, close_logging, configure_logging, get_logger, log_startup_info

__all__ = ["LaunchLog", "build_info", "close_logging", "configure_logging", "get_logger", "log_startup_info"]
