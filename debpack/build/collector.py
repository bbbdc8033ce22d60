"""
数据文件收集器

根据构建描述中的数据映射（源 -> 包内路径）展开要写入 data.tar.gz 的条目，
支持目录递归和 glob 排除。
"""

import fnmatch
import posixpath
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, List, Optional

from ..config.schema import DataMappingModel
from ..utils import archive_path


class CollectError(Exception):
    """数据收集错误"""
    pass


@dataclass
class DataEntry:
    """待写入的数据条目"""
    source: Path          # 源文件绝对路径
    target: str           # 包内路径（不带前导 /）
    size: int             # 文件大小（字节），目录为 0
    is_directory: bool = False

    def to_dict(self) -> Dict[str, object]:
        """转换为字典格式"""
        return {
            'source': str(self.source),
            'target': self.target,
            'size': self.size,
            'is_directory': self.is_directory,
        }


class DataCollector:
    """数据收集器

    负责把数据映射展开为按包内路径排序的条目列表。
    """

    def __init__(self):
        self.collected: List[DataEntry] = []
        self.excluded_patterns: List[str] = []
        self.total_size: int = 0

    def collect(
        self,
        mappings: List[DataMappingModel],
        architecture: str,
        exclude_patterns: Optional[List[str]] = None,
    ) -> List[DataEntry]:
        """收集数据条目

        Args:
            mappings: 数据映射列表
            architecture: 目标架构（用于替换 %arch%）
            exclude_patterns: 排除模式列表（glob 格式，匹配相对于映射源的路径）

        Returns:
            List[DataEntry]: 按包内路径排序的条目

        Raises:
            CollectError: 源路径不存在、无法访问或包内路径冲突
        """
        self.collected = []
        self.excluded_patterns = exclude_patterns or []
        self.total_size = 0

        by_target: Dict[str, DataEntry] = {}

        for mapping in mappings:
            source = mapping.source_for(architecture)
            try:
                target_root = archive_path(mapping.target)
            except ValueError as e:
                raise CollectError(f"无效的目标路径 {mapping.target}: {e}") from e

            if not source.exists():
                raise CollectError(f"数据源不存在: {source}")

            if source.is_file():
                self._add(by_target, self._create_entry(source, target_root))
            elif source.is_dir():
                self._add(by_target, DataEntry(source.resolve(), target_root, 0, is_directory=True))
                for item in self._walk_directory(source, source, mapping.recursive):
                    relative = item.relative_to(source).as_posix()
                    self._add(by_target, self._create_entry(item, posixpath.join(target_root, relative)))
            else:
                raise CollectError(f"数据源既不是文件也不是目录: {source}")

        self.collected = sorted(by_target.values(), key=lambda e: e.target)
        self.total_size = sum(e.size for e in self.collected if not e.is_directory)
        return self.collected

    def get_statistics(self) -> Dict[str, int]:
        """获取收集统计信息"""
        file_count = sum(1 for e in self.collected if not e.is_directory)
        return {
            'total_files': file_count,
            'total_directories': len(self.collected) - file_count,
            'total_size': self.total_size,
        }

    def _add(self, by_target: Dict[str, DataEntry], entry: DataEntry) -> None:
        existing = by_target.get(entry.target)
        if existing is None:
            by_target[entry.target] = entry
            return
        # 同一目录被多个映射覆盖是允许的
        if existing.is_directory and entry.is_directory:
            return
        raise CollectError(f"包内路径冲突: {entry.target} ({existing.source} / {entry.source})")

    def _walk_directory(self, root: Path, directory: Path, recursive: bool) -> Iterator[Path]:
        """遍历目录，按名称排序以保证顺序稳定

        被排除的目录连同其内容一起跳过，不会进入。

        Raises:
            CollectError: 目录无法读取
        """
        try:
            children = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as e:
            raise CollectError(f"无法读取目录 {directory}: {e}") from e

        for item in children:
            if self._is_excluded(item.relative_to(root).as_posix()):
                continue
            if item.is_dir():
                if recursive:
                    yield item
                    yield from self._walk_directory(root, item, recursive)
            else:
                yield item

    def _create_entry(self, path: Path, target: str) -> DataEntry:
        try:
            is_directory = path.is_dir()
            size = 0 if is_directory else path.stat().st_size
        except OSError as e:
            raise CollectError(f"无法读取文件信息 {path}: {e}") from e
        return DataEntry(source=path.resolve(), target=target, size=size, is_directory=is_directory)

    def _is_excluded(self, relative_path: str) -> bool:
        """检查相对路径是否被排除"""
        return any(self._match_pattern(relative_path, pattern.replace('\\', '/'))
                   for pattern in self.excluded_patterns)

    def _match_pattern(self, path: str, pattern: str) -> bool:
        """匹配单个模式

        Args:
            path: 相对路径
            pattern: glob 模式

        Returns:
            bool: 是否匹配
        """
        if fnmatch.fnmatch(path, pattern):
            return True

        # 目录模式（以 / 结尾）匹配目录本身及其内容
        if pattern.endswith('/'):
            dir_pattern = pattern.rstrip('/')
            parts = path.split('/')
            for i in range(1, len(parts) + 1):
                if fnmatch.fnmatch('/'.join(parts[:i]), dir_pattern) or fnmatch.fnmatch(parts[i - 1], dir_pattern):
                    return True

        # 不含分隔符的模式按文件名匹配
        if '/' not in pattern and fnmatch.fnmatch(posixpath.basename(path), pattern):
            return True

        return False


def parent_directories(targets: List[str]) -> List[str]:
    """计算所有条目的上级目录（不含包根），按路径排序"""
    parents = set()
    for target in targets:
        parent = posixpath.dirname(target)
        while parent:
            parents.add(parent)
            parent = posixpath.dirname(parent)
    return sorted(parents)


def collect_data(
    mappings: List[DataMappingModel],
    architecture: str,
    exclude_patterns: Optional[List[str]] = None,
) -> List[DataEntry]:
    """便捷函数：收集数据条目"""
    collector = DataCollector()
    return collector.collect(mappings, architecture, exclude_patterns)
