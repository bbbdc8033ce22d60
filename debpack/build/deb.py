"""
.deb 容器写入

.deb 是一个 ar 归档，依次包含 debian-binary、control.tar.gz、data.tar.gz 三个成员。
"""

import shutil
from pathlib import Path
from typing import BinaryIO, Union

AR_MAGIC = b"!<arch>\n"
DEBIAN_BINARY = b"2.0\n"
AR_FILE_MODE = 0o100644


class DebWriteError(Exception):
    """.deb 写入错误"""
    pass


def ar_member_header(name: str, size: int, mtime: int, mode: int = AR_FILE_MODE) -> bytes:
    """构造 60 字节的 ar 成员头

    Raises:
        DebWriteError: 成员名超过 16 字节
    """
    if len(name) > 16:
        raise DebWriteError(f"ar 成员名过长（最多 16 字节）: {name}")

    header = (
        name.ljust(16)
        + str(int(mtime)).ljust(12)
        + "0".ljust(6)
        + "0".ljust(6)
        + oct(mode)[2:].ljust(8)
        + str(size).ljust(10)
        + "`\n"
    ).encode("ascii")

    if len(header) != 60:
        raise DebWriteError(f"ar 成员头长度错误: {len(header)}")
    return header


def _write_member_bytes(out: BinaryIO, name: str, data: bytes, mtime: int) -> None:
    out.write(ar_member_header(name, len(data), mtime))
    out.write(data)
    if len(data) % 2 == 1:
        out.write(b"\n")


def _write_member_file(out: BinaryIO, name: str, path: Path, mtime: int) -> None:
    size = path.stat().st_size
    out.write(ar_member_header(name, size, mtime))
    with open(path, 'rb') as src:
        shutil.copyfileobj(src, out, 64 * 1024)
    if size % 2 == 1:
        out.write(b"\n")


def write_deb(
    output_path: Union[str, Path],
    control_archive: Union[str, Path],
    data_archive: Union[str, Path],
    mtime: int,
) -> int:
    """组装 .deb 文件

    Args:
        output_path: 输出 .deb 路径
        control_archive: control.tar.gz 路径
        data_archive: data.tar.gz 路径
        mtime: 写入 ar 成员头的时间戳

    Returns:
        int: 输出文件大小

    Raises:
        DebWriteError: 写入失败
    """
    output_path = Path(output_path)
    try:
        with open(output_path, 'wb') as out:
            out.write(AR_MAGIC)
            _write_member_bytes(out, "debian-binary", DEBIAN_BINARY, mtime)
            _write_member_file(out, "control.tar.gz", Path(control_archive), mtime)
            _write_member_file(out, "data.tar.gz", Path(data_archive), mtime)
    except OSError as e:
        raise DebWriteError(f"写入 .deb 失败 {output_path}: {e}") from e

    return output_path.stat().st_size
