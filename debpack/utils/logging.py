"""
日志工具 - 统一输出门面

封装 Rich Console，提供带时间戳和构建阶段标记的统一输出接口。
"""

import atexit
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional, TextIO, Union

from rich.console import Console
from rich.markup import escape


class OutputLevel:
    """输出级别常量"""
    DEBUG = "DEBUG"
    INFO = "INFO"
    SUCCESS = "SUCCESS"
    WARNING = "WARNING"
    ERROR = "ERROR"


_LEVEL_ORDER = {
    OutputLevel.DEBUG: 0,
    OutputLevel.INFO: 1,
    OutputLevel.SUCCESS: 1,
    OutputLevel.WARNING: 2,
    OutputLevel.ERROR: 3,
}

_LEVEL_STYLES = {
    OutputLevel.DEBUG: "dim",
    OutputLevel.INFO: "default",
    OutputLevel.SUCCESS: "green",
    OutputLevel.WARNING: "yellow",
    OutputLevel.ERROR: "red",
}


class LogStage:
    """日志阶段标记"""
    INIT = "INIT"
    BUILD = "BUILD"
    COLLECT = "COLLECT"
    DATA = "DATA"
    CONTROL = "CONTROL"
    DIGEST = "DIGEST"
    ASSEMBLE = "ASSEMBLE"
    DONE = "DONE"


class OutputFacade:
    """输出门面

    所有输出都带时间戳；ERROR 写到 stderr，其余写到 stdout。
    可选地同时追加到日志文件。
    """

    def __init__(self, stream: Optional[TextIO] = None, error_stream: Optional[TextIO] = None):
        self._lock = threading.RLock()
        self._console = Console(file=stream, highlight=False, log_path=False)
        self._error_console = Console(file=error_stream, stderr=True, highlight=False, log_path=False)
        self._file_handle: Optional[TextIO] = None
        self._log_level = OutputLevel.INFO
        self._date_format = "%Y-%m-%d %H:%M:%S"
        self._time_format = "%H:%M:%S"

    @property
    def level(self) -> str:
        return self._log_level

    def set_level(self, level: str) -> None:
        """设置输出级别"""
        with self._lock:
            if level in _LEVEL_ORDER and level != OutputLevel.SUCCESS:
                self._log_level = level

    def set_log_file(self, file_path: Union[str, Path]) -> None:
        """设置日志文件

        Raises:
            OSError: 日志文件无法打开
        """
        with self._lock:
            self._close_file()
            log_path = Path(file_path)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            self._file_handle = open(log_path, 'a', encoding='utf-8')

    def close(self) -> None:
        """关闭输出门面"""
        with self._lock:
            self._close_file()

    def _close_file(self) -> None:
        if self._file_handle:
            self._file_handle.close()
            self._file_handle = None

    def _should_output(self, level: str) -> bool:
        return _LEVEL_ORDER.get(level, 1) >= _LEVEL_ORDER.get(self._log_level, 1)

    def _timestamp(self, include_date: bool = False) -> str:
        return datetime.now().strftime(self._date_format if include_date else self._time_format)

    def _format_plain(self, message: str, level: str, stage: Optional[str], include_date: bool) -> str:
        timestamp = self._timestamp(include_date)
        if stage:
            return f"[{timestamp}] [{level}] [{stage}] {message}"
        return f"[{timestamp}] [{level}] {message}"

    def emit(self, message: str, level: str = OutputLevel.INFO, stage: Optional[str] = None) -> None:
        """输出一条消息"""
        if not self._should_output(level):
            return

        with self._lock:
            console = self._error_console if level == OutputLevel.ERROR else self._console
            parts = [f"[dim]{self._timestamp()}[/dim]", f"[bold]{level}[/bold]"]
            if stage:
                parts.append(f"[cyan]{stage}[/cyan]")
            # 消息本身可能包含方括号（路径、列表），不能当作 markup 解析
            parts.append(escape(message))
            console.print(" ".join(parts), style=_LEVEL_STYLES.get(level, "default"))

            if self._file_handle:
                self._file_handle.write(self._format_plain(message, level, stage, include_date=True) + "\n")
                self._file_handle.flush()


_output_facade: Optional[OutputFacade] = None


def get_output_facade() -> OutputFacade:
    """获取全局输出门面实例"""
    global _output_facade
    if _output_facade is None:
        _output_facade = OutputFacade()
    return _output_facade


def debug(message: str, stage: Optional[str] = None) -> None:
    get_output_facade().emit(message, OutputLevel.DEBUG, stage)


def info(message: str, stage: Optional[str] = None) -> None:
    get_output_facade().emit(message, OutputLevel.INFO, stage)


def success(message: str, stage: Optional[str] = None) -> None:
    get_output_facade().emit(message, OutputLevel.SUCCESS, stage)


def warning(message: str, stage: Optional[str] = None) -> None:
    get_output_facade().emit(message, OutputLevel.WARNING, stage)


def error(message: str, stage: Optional[str] = None) -> None:
    get_output_facade().emit(message, OutputLevel.ERROR, stage)


def set_log_level(level: str) -> None:
    """设置全局日志级别"""
    get_output_facade().set_level(level)


def set_log_file(file_path: Union[str, Path]) -> None:
    """设置全局日志文件"""
    get_output_facade().set_log_file(file_path)


def close_logger() -> None:
    """关闭日志系统"""
    global _output_facade
    if _output_facade:
        _output_facade.close()
        _output_facade = None


class StageLogger:
    """绑定固定阶段的日志器"""

    def __init__(self, stage: str):
        self.stage = stage

    def debug(self, message: str) -> None:
        debug(message, self.stage)

    def info(self, message: str) -> None:
        info(message, self.stage)

    def success(self, message: str) -> None:
        success(message, self.stage)

    def warning(self, message: str) -> None:
        warning(message, self.stage)

    def error(self, message: str) -> None:
        error(message, self.stage)


def get_stage_logger(stage: str) -> StageLogger:
    """获取阶段日志器"""
    return StageLogger(stage)


def configure_logging(level: str = OutputLevel.INFO, log_file: Optional[Union[str, Path]] = None) -> None:
    """配置日志系统"""
    set_log_level(level)
    if log_file:
        set_log_file(log_file)


atexit.register(close_logger)
