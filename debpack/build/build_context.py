"""
构建上下文模块

定义构建过程中的共享数据结构和异常类。
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING

from ..config.schema import PackageConfig

if TYPE_CHECKING:
    from .archive import EntryRecord
    from .collector import DataEntry
    from .digest import DigestSet

# 进度回调类型 (阶段, 当前, 总数, 消息)
ProgressCallback = Callable[[str, int, int, str], None]


@dataclass
class BuildContext:
    """单个架构的构建上下文"""
    config: PackageConfig
    architecture: str
    output_path: Path
    work_dir: Path
    mtime: int = 0
    progress_callback: Optional[ProgressCallback] = None

    # 构建过程中生成的数据
    entries: Optional[List['DataEntry']] = None
    data_records: List['EntryRecord'] = field(default_factory=list)
    data_archive: Optional[Path] = None
    control_files: List[Path] = field(default_factory=list)
    control_archive: Optional[Path] = None
    package_digests: Optional['DigestSet'] = None

    build_stats: Dict[str, Any] = field(default_factory=lambda: {
        'start_time': 0,
        'end_time': 0,
        'total_files': 0,
        'total_size': 0,
        'installed_size_kib': 0,
        'data_archive_size': 0,
        'control_archive_size': 0,
        'package_size': 0,
    })

    def report(self, stage: str, current: int, message: str = "") -> None:
        """上报进度（百分比）"""
        if self.progress_callback:
            self.progress_callback(stage, current, 100, message)


class BuildError(Exception):
    """构建错误"""
    pass
