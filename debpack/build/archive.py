"""
tar+gzip 归档写入器

逐条写入归档条目，写入的同时计算内容摘要，返回条目路径和内容标识。
所有权链：TarFile -> GzipFile -> 底层文件，关闭时由外到内逐层关闭。
"""

import gzip
import io
import os
import stat
import tarfile
import time
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, List, Optional, Set, Union

from ..utils.logging import get_stage_logger, LogStage
from .digest import DigestSet, DigestingReader

logger = get_stage_logger(LogStage.DATA)

DEFAULT_FILE_MODE = 0o644
DEFAULT_DIR_MODE = 0o755


class ArchiveError(Exception):
    """归档相关错误基类"""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        super().__init__(message)
        self.path = str(path) if path is not None else None


class ResourceUnavailableError(ArchiveError):
    """无法创建归档文件或打开源文件"""
    pass


class ArchiveIOError(ArchiveError):
    """读写过程中发生的 I/O 错误"""
    pass


class InvalidStateError(ArchiveError):
    """在错误的生命周期阶段调用操作（例如关闭后写入）"""
    pass


class DuplicateEntryError(ArchiveError):
    """条目路径重复"""
    pass


@dataclass(frozen=True)
class EntryRecord:
    """已写入的归档条目"""
    path: str           # 归档内的逻辑路径
    size: int           # 内容字节数
    digests: DigestSet  # 内容摘要

    @property
    def identity(self) -> str:
        """内容标识：内容的 128 位摘要，只取决于内容本身"""
        return self.digests.md5


def default_mtime() -> int:
    """条目时间戳：优先使用 SOURCE_DATE_EPOCH 以保证可重复构建"""
    epoch = os.environ.get('SOURCE_DATE_EPOCH')
    if epoch and epoch.isdigit():
        return int(epoch)
    return int(time.time())


class TarGzWriter:
    """tar+gzip 归档写入器

    生命周期：创建（打开）-> 任意次写入 -> close（只能一次）。
    不是线程安全的，同一时刻只能由一个调用方驱动。

    用法:
        with TarGzWriter(path) as writer:
            record = writer.write_data("hello.txt", b"hello")
            record = writer.write_file(source, "usr/bin/tool")
    """

    def __init__(
        self,
        path: Union[str, Path],
        compress_level: int = 9,
        mtime: Optional[int] = None,
    ):
        """打开归档文件

        Args:
            path: 输出文件路径
            compress_level: gzip 压缩级别 (1-9)
            mtime: 所有条目以及 gzip 头使用的时间戳

        Raises:
            ResourceUnavailableError: 无法创建输出文件
        """
        self.path = Path(path)
        self.mtime = default_mtime() if mtime is None else int(mtime)
        self.records: List[EntryRecord] = []
        self._names: Set[str] = set()
        self._closed = False
        self._broken = False

        try:
            self._file: BinaryIO = open(self.path, 'wb')
        except OSError as e:
            raise ResourceUnavailableError(f"无法创建归档文件 {self.path}: {e}", self.path) from e

        try:
            self._gzip = gzip.GzipFile(
                filename='',
                mode='wb',
                compresslevel=compress_level,
                fileobj=self._file,
                mtime=self.mtime,
            )
            self._tar = tarfile.TarFile(fileobj=self._gzip, mode='w', format=tarfile.GNU_FORMAT)
        except (OSError, ValueError) as e:
            self._file.close()
            raise ResourceUnavailableError(f"无法初始化归档流 {self.path}: {e}", self.path) from e

        logger.debug(f"打开归档: {self.path} (level={compress_level}, mtime={self.mtime})")

    @classmethod
    def open(cls, path: Union[str, Path], **kwargs) -> 'TarGzWriter':
        """打开归档文件，等同于直接构造"""
        return cls(path, **kwargs)

    def __enter__(self) -> 'TarGzWriter':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if self._closed:
            return
        if exc_type is None:
            self.close()
            return
        # 主体已经失败：仍然释放所有层，但不让关闭错误覆盖原始异常
        try:
            self.close()
        except ArchiveError as close_error:
            logger.warning(f"异常退出时关闭归档失败: {close_error}")

    @property
    def closed(self) -> bool:
        return self._closed

    def write_data(self, entry_path: str, data: bytes) -> EntryRecord:
        """写入内存数据条目

        Args:
            entry_path: 归档内路径
            data: 条目内容

        Returns:
            EntryRecord: 条目路径与内容标识

        Raises:
            InvalidStateError: 归档已关闭或已损坏
            DuplicateEntryError: 条目路径重复
            ArchiveIOError: 写入失败
        """
        self._check_writable(entry_path)

        tarinfo = self._make_tarinfo(entry_path, len(data), DEFAULT_FILE_MODE)
        reader = DigestingReader(io.BytesIO(data))
        self._add(tarinfo, reader, entry_path)

        return self._record(entry_path, reader)

    def write_file(self, source_path: Union[str, Path], entry_path: str) -> EntryRecord:
        """写入磁盘文件条目

        文件大小取自打开后的 fstat，内容只读取一遍，同时写入归档并计算摘要。

        Args:
            source_path: 源文件路径
            entry_path: 归档内路径

        Returns:
            EntryRecord: 条目路径与内容标识

        Raises:
            InvalidStateError: 归档已关闭或已损坏
            DuplicateEntryError: 条目路径重复
            ResourceUnavailableError: 源文件不存在或无法打开
            ArchiveIOError: 读写失败
        """
        self._check_writable(entry_path)

        # 打开 FIFO 等特殊文件会阻塞，先按路径确认是普通文件
        try:
            if not stat.S_ISREG(os.stat(source_path).st_mode):
                raise ResourceUnavailableError(f"源路径不是普通文件: {source_path}", source_path)
        except OSError as e:
            raise ResourceUnavailableError(f"无法访问源文件 {source_path}: {e}", source_path) from e

        try:
            source = open(source_path, 'rb')
        except OSError as e:
            raise ResourceUnavailableError(f"无法打开源文件 {source_path}: {e}", source_path) from e

        with source:
            try:
                st = os.fstat(source.fileno())
            except OSError as e:
                raise ArchiveIOError(f"读取文件信息失败 {source_path}: {e}", source_path) from e
            if not stat.S_ISREG(st.st_mode):
                raise ResourceUnavailableError(f"源路径不是普通文件: {source_path}", source_path)

            tarinfo = self._make_tarinfo(entry_path, st.st_size, stat.S_IMODE(st.st_mode))
            reader = DigestingReader(source)
            self._add(tarinfo, reader, entry_path, source_path)

        return self._record(entry_path, reader)

    def write_directory(self, entry_path: str, mode: int = DEFAULT_DIR_MODE) -> None:
        """写入目录条目（不计算摘要）

        Raises:
            InvalidStateError: 归档已关闭或已损坏
            DuplicateEntryError: 条目路径重复
            ArchiveIOError: 写入失败
        """
        self._check_writable(entry_path)

        tarinfo = self._make_tarinfo(entry_path, 0, mode)
        tarinfo.type = tarfile.DIRTYPE
        self._add(tarinfo, None, entry_path)
        self._names.add(entry_path)

    def close(self) -> None:
        """按 tar -> gzip -> 文件 的顺序关闭

        每一层都会尝试关闭，第一个失败会被抛出。

        Raises:
            InvalidStateError: 重复关闭
            ArchiveIOError: 任意一层关闭失败
        """
        if self._closed:
            raise InvalidStateError(f"归档已关闭: {self.path}", self.path)
        self._closed = True

        first_error: Optional[Exception] = None
        for layer in (self._tar, self._gzip, self._file):
            try:
                layer.close()
            except (OSError, ValueError) as e:
                if first_error is None:
                    first_error = e

        if first_error is not None:
            raise ArchiveIOError(f"关闭归档失败 {self.path}: {first_error}", self.path) from first_error

        logger.debug(f"归档已关闭: {self.path} ({len(self.records)} 个文件条目)")

    def _check_writable(self, entry_path: str) -> None:
        if self._closed:
            raise InvalidStateError(f"归档已关闭，无法写入条目 {entry_path}", self.path)
        if self._broken:
            raise InvalidStateError(f"归档在之前的写入失败后已损坏，无法写入条目 {entry_path}", self.path)
        if not entry_path:
            raise ArchiveError("条目路径不能为空", self.path)
        if entry_path in self._names:
            raise DuplicateEntryError(f"重复的归档条目: {entry_path}", entry_path)

    def _make_tarinfo(self, entry_path: str, size: int, mode: int) -> tarfile.TarInfo:
        tarinfo = tarfile.TarInfo(name=entry_path)
        tarinfo.size = size
        tarinfo.mode = mode
        tarinfo.mtime = self.mtime
        tarinfo.uid = 0
        tarinfo.gid = 0
        tarinfo.uname = 'root'
        tarinfo.gname = 'root'
        return tarinfo

    def _add(
        self,
        tarinfo: tarfile.TarInfo,
        reader: Optional[DigestingReader],
        entry_path: str,
        source_path: Optional[Union[str, Path]] = None,
    ) -> None:
        try:
            self._tar.addfile(tarinfo, reader)
        except OSError as e:
            self._broken = True
            where = source_path if source_path is not None else entry_path
            raise ArchiveIOError(f"写入条目失败 {entry_path}: {e}", where) from e

    def _record(self, entry_path: str, reader: DigestingReader) -> EntryRecord:
        record = EntryRecord(path=entry_path, size=reader.bytes_read, digests=reader.result())
        self._names.add(entry_path)
        self.records.append(record)
        logger.debug(f"写入条目: {entry_path} size={record.size} md5={record.identity}")
        return record
