"""
路径工具

提供路径处理相关的工具函数。
"""

import os
import posixpath
import shutil
import tempfile
from pathlib import Path
from typing import Union


def expand_path(path: Union[str, Path]) -> Path:
    """扩展路径（处理环境变量和用户目录）

    Args:
        path: 原始路径

    Returns:
        Path: 扩展后的绝对路径
    """
    if isinstance(path, str):
        path = os.path.expandvars(path)
        path = os.path.expanduser(path)

    return Path(path).resolve()


def ensure_directory(path: Union[str, Path]) -> Path:
    """确保目录存在

    Args:
        path: 目录路径

    Returns:
        Path: 目录路径
    """
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def get_temp_dir(prefix: str = "debpack_") -> Path:
    """获取临时目录

    Args:
        prefix: 目录前缀

    Returns:
        Path: 临时目录路径
    """
    return Path(tempfile.mkdtemp(prefix=prefix))


def full_path(path: Union[str, Path]) -> str:
    """将包内路径规范化为目标系统上的绝对路径

    conffiles 等控制文件中记录的是安装后的路径，因此始终以 "/" 为根，
    并折叠多余的分隔符与 "." 片段。

    Args:
        path: 原始路径（可以是相对路径）

    Returns:
        str: 规范化后的绝对路径，例如 "/etc/app/app.conf"

    Raises:
        ValueError: 路径为空或试图越过根目录
    """
    raw = str(path).replace('\\', '/').strip()
    if not raw:
        raise ValueError("路径不能为空")

    if any(part == ".." for part in raw.split('/')):
        raise ValueError(f"检测到目录穿越尝试: {path}")

    return posixpath.normpath('/' + raw.lstrip('/'))


def archive_path(path: Union[str, Path]) -> str:
    """将路径规范化为归档条目路径（相对路径，正斜杠分隔）

    Args:
        path: 原始路径

    Returns:
        str: 不带前导 "/" 或 "./" 的条目路径

    Raises:
        ValueError: 路径为空或包含上级目录引用
    """
    return full_path(path).lstrip('/')


def file_exists(path: Union[str, Path, None]) -> bool:
    """检查路径是否指向已存在的普通文件"""
    if not path:
        return False
    return Path(path).is_file()


def copy_file(src: Union[str, Path], dst: Union[str, Path], mode: int = 0o644) -> Path:
    """按字节原样复制文件内容并设置权限

    Args:
        src: 源文件路径
        dst: 目标文件路径
        mode: 目标文件权限

    Returns:
        Path: 目标文件路径

    Raises:
        OSError: 读取或写入失败
    """
    dst_path = Path(dst)
    with open(src, 'rb') as fsrc, open(dst_path, 'wb') as fdst:
        shutil.copyfileobj(fsrc, fdst, 64 * 1024)
    os.chmod(dst_path, mode)
    return dst_path


def format_size(size_bytes: int) -> str:
    """格式化文件大小

    Args:
        size_bytes: 字节数

    Returns:
        str: 格式化的大小字符串
    """
    if size_bytes == 0:
        return "0 B"

    units = ["B", "KB", "MB", "GB", "TB"]
    unit_index = 0
    size = float(size_bytes)

    while size >= 1024.0 and unit_index < len(units) - 1:
        size /= 1024.0
        unit_index += 1

    if unit_index == 0:
        return f"{int(size)} {units[unit_index]}"
    else:
        return f"{size:.1f} {units[unit_index]}"
