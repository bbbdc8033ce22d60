"""通用工具模块"""

from .logging import (
    configure_logging,
    get_stage_logger,
    StageLogger,
    LogStage,
    OutputLevel,
)

from .paths import (
    archive_path,
    copy_file,
    ensure_directory,
    file_exists,
    format_size,
    full_path,
    get_temp_dir,
)

__all__ = [
    # 日志相关
    "configure_logging",
    "get_stage_logger",
    "StageLogger",
    "LogStage",
    "OutputLevel",

    # 路径相关
    "archive_path",
    "copy_file",
    "ensure_directory",
    "file_exists",
    "format_size",
    "full_path",
    "get_temp_dir",
]
