"""构建服务模块

提供 Debian 软件包构建的核心功能。
"""

from .archive import (
    ArchiveError,
    ArchiveIOError,
    DuplicateEntryError,
    EntryRecord,
    InvalidStateError,
    ResourceUnavailableError,
    TarGzWriter,
)
from .builder import Builder, BuildResult, PackageArtifact
from .build_context import BuildError
from .collector import CollectError, DataCollector, DataEntry, collect_data
from .control import (
    ControlAssembler,
    ControlError,
    ControlFileRenderer,
    MaintainerScripts,
    ScriptRole,
    build_md5sums,
)
from .deb import DebWriteError, write_deb
from .digest import (
    DigestSet,
    DigestingReader,
    MultiDigest,
    calc_data_digest,
    calc_file_digest,
    calc_multi_digest,
)

__all__ = [
    # 主构建器
    "Builder",
    "BuildResult",
    "BuildError",
    "PackageArtifact",

    # 归档写入
    "TarGzWriter",
    "EntryRecord",
    "ArchiveError",
    "ArchiveIOError",
    "DuplicateEntryError",
    "InvalidStateError",
    "ResourceUnavailableError",

    # 摘要
    "DigestSet",
    "DigestingReader",
    "MultiDigest",
    "calc_data_digest",
    "calc_file_digest",
    "calc_multi_digest",

    # 控制信息
    "ControlAssembler",
    "ControlError",
    "ControlFileRenderer",
    "MaintainerScripts",
    "ScriptRole",
    "build_md5sums",

    # 数据收集
    "CollectError",
    "DataCollector",
    "DataEntry",
    "collect_data",

    # .deb 容器
    "DebWriteError",
    "write_deb",
]
