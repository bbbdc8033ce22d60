"""
控制目录组装

把构建描述中的配置文件列表和维护脚本落地到暂存目录，
并生成 control 描述段与 md5sums 清单。
"""

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Iterable, List, Optional, Union

from ..config.schema import PackageConfig
from ..utils import copy_file, file_exists, full_path
from ..utils.logging import get_stage_logger, LogStage
from .archive import EntryRecord

logger = get_stage_logger(LogStage.CONTROL)

CONFFILES_NAME = "conffiles"
CONTROL_NAME = "control"
MD5SUMS_NAME = "md5sums"
SCRIPT_MODE = 0o755


class ControlError(Exception):
    """控制目录组装错误"""
    pass


class ScriptRole(str, Enum):
    """维护脚本角色，值为控制目录中的固定文件名"""
    PRE_INSTALL = "preinst"
    POST_INSTALL = "postinst"
    PRE_REMOVE = "prerm"
    POST_REMOVE = "postrm"


@dataclass(frozen=True)
class MaintainerScripts:
    """四个维护脚本的源文件路径，未配置的为 None"""
    pre_install: Optional[Path] = None
    post_install: Optional[Path] = None
    pre_remove: Optional[Path] = None
    post_remove: Optional[Path] = None

    @classmethod
    def from_config(cls, config: PackageConfig) -> 'MaintainerScripts':
        control = config.control
        return cls(
            pre_install=control.pre_install,
            post_install=control.post_install,
            pre_remove=control.pre_remove,
            post_remove=control.post_remove,
        )

    def items(self) -> List[tuple]:
        """按固定顺序返回 (角色, 源路径)"""
        return [
            (ScriptRole.PRE_INSTALL, self.pre_install),
            (ScriptRole.POST_INSTALL, self.post_install),
            (ScriptRole.PRE_REMOVE, self.pre_remove),
            (ScriptRole.POST_REMOVE, self.post_remove),
        ]


class ControlAssembler:
    """控制目录组装器

    负责 conffiles 和维护脚本；生成的文件列表交给归档写入器按路径引用。
    写入失败时直接中止，暂存目录中已生成的文件由调用方清理。
    """

    def __init__(self):
        self.generated_files: List[Path] = []

    def materialize(self, config: PackageConfig, staging_dir: Union[str, Path]) -> List[Path]:
        """把控制文件写入暂存目录

        Args:
            config: 构建描述
            staging_dir: 暂存目录（必须已存在）

        Returns:
            List[Path]: 生成的文件路径列表（conffiles 在前，脚本按固定顺序在后）

        Raises:
            ControlError: 写入或复制失败
        """
        staging_dir = Path(staging_dir)
        self.generated_files = []

        conffiles = config.control.conffiles
        if conffiles:
            self.generated_files.append(self._write_conffiles(conffiles, staging_dir))

        for role, source in MaintainerScripts.from_config(config).items():
            if not file_exists(source):
                if source:
                    logger.debug(f"维护脚本不存在，跳过: {role.value} <- {source}")
                continue

            destination = staging_dir / role.value
            try:
                copy_file(source, destination, SCRIPT_MODE)
            except OSError as e:
                raise ControlError(f"复制维护脚本失败 {source} -> {destination}: {e}") from e

            logger.debug(f"维护脚本: {role.value} <- {source}")
            self.generated_files.append(destination)

        return list(self.generated_files)

    def _write_conffiles(self, conffiles: Iterable[str], staging_dir: Path) -> Path:
        """写入 conffiles：规范化为绝对路径后按字典序排列，每行一个"""
        try:
            entries = sorted({full_path(item) for item in conffiles})
        except ValueError as e:
            raise ControlError(f"无效的配置文件路径: {e}") from e

        destination = staging_dir / CONFFILES_NAME
        try:
            with open(destination, 'w', encoding='utf-8', newline='\n') as f:
                for entry in entries:
                    f.write(entry + "\n")
        except OSError as e:
            raise ControlError(f"写入 conffiles 失败 {destination}: {e}") from e

        logger.debug(f"conffiles: {len(entries)} 项")
        return destination


def _format_field(name: str, value: str) -> str:
    if "\n" not in value:
        return f"{name}: {value}"
    first, *rest = value.splitlines()
    return "\n".join([f"{name}: {first}"] + [f" {line}" for line in rest])


def format_description(description: str) -> str:
    """把多行描述转成 control 格式：续行以空格开头，空行写作 " ." """
    lines = description.strip().splitlines()
    synopsis = lines[0].strip()
    body = [line.rstrip() if line.strip() else "." for line in lines[1:]]
    return "\n".join([synopsis] + body)


class ControlFileRenderer:
    """control 描述段渲染器"""

    RELATION_FIELDS = (
        ("Pre-Depends", "pre_depends"),
        ("Depends", "depends"),
        ("Recommends", "recommends"),
        ("Suggests", "suggests"),
        ("Conflicts", "conflicts"),
        ("Breaks", "breaks"),
        ("Replaces", "replaces"),
        ("Provides", "provides"),
    )

    def render(self, config: PackageConfig, architecture: str, installed_size_kib: int) -> bytes:
        """渲染 control 文件内容

        Args:
            config: 构建描述
            architecture: 目标架构
            installed_size_kib: 安装后占用空间（KiB）

        Returns:
            bytes: UTF-8 编码的 control 内容
        """
        package = config.package
        fields = [
            ("Package", package.name),
            ("Version", package.version),
            ("Architecture", architecture),
            ("Maintainer", package.maintainer),
            ("Installed-Size", str(installed_size_kib)),
        ]

        for field_name, attr in self.RELATION_FIELDS:
            values = getattr(config.control, attr)
            if values:
                fields.append((field_name, ", ".join(values)))

        if package.section:
            fields.append(("Section", package.section))
        fields.append(("Priority", package.priority.value))
        if package.essential:
            fields.append(("Essential", "yes"))
        if package.homepage:
            fields.append(("Homepage", package.homepage))
        fields.append(("Description", format_description(package.description)))

        text = "\n".join(_format_field(name, value) for name, value in fields) + "\n"
        return text.encode('utf-8')


def installed_size_kib(records: Iterable[EntryRecord]) -> int:
    """按 KiB 向上取整计算安装大小，最小为 1"""
    total = sum(record.size for record in records)
    return max(1, (total + 1023) // 1024)


def build_md5sums(records: Iterable[EntryRecord]) -> bytes:
    """按写入顺序生成 md5sums 清单，每行 "<md5>  <path>" """
    lines = [f"{record.identity}  {record.path}" for record in records]
    text = "\n".join(lines)
    if text:
        text += "\n"
    return text.encode('utf-8')
