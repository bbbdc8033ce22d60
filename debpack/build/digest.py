"""
多算法摘要计算

一次读取同时喂给 MD5 / SHA-1 / SHA-256 三个累加器，
供 md5sums 清单和最终 .deb 的校验信息使用。
"""

import hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Optional, Union

CHUNK_SIZE = 64 * 1024


@dataclass(frozen=True)
class DigestSet:
    """同一字节序列的三种摘要（十六进制）"""
    md5: str     # 128 位
    sha1: str    # 160 位
    sha256: str  # 256 位

    def to_dict(self) -> dict:
        return {'md5': self.md5, 'sha1': self.sha1, 'sha256': self.sha256}


class MultiDigest:
    """多路摘要累加器

    每次 update 的数据同时送入三个独立的哈希对象。
    """

    def __init__(self):
        self._hashers = (hashlib.md5(), hashlib.sha1(), hashlib.sha256())
        self.size = 0

    def update(self, data: Union[bytes, bytearray, memoryview]) -> None:
        """更新摘要数据"""
        for hasher in self._hashers:
            hasher.update(data)
        self.size += len(data)

    def result(self) -> DigestSet:
        """获取当前的摘要结果"""
        md5, sha1, sha256 = (hasher.hexdigest() for hasher in self._hashers)
        return DigestSet(md5=md5, sha1=sha1, sha256=sha256)


class DigestingReader:
    """边读边算摘要的只读流包装

    被包装的流只读一遍：调用方每 read 一块，这一块就同时进入摘要，
    因此复制和摘要在同一次遍历中完成。
    """

    def __init__(self, stream: BinaryIO, digest: Optional[MultiDigest] = None):
        self._stream = stream
        self.digest = digest if digest is not None else MultiDigest()

    def read(self, size: int = -1) -> bytes:
        chunk = self._stream.read(size)
        if chunk:
            self.digest.update(chunk)
        return chunk

    @property
    def bytes_read(self) -> int:
        return self.digest.size

    def result(self) -> DigestSet:
        return self.digest.result()


def calc_multi_digest(stream: BinaryIO, chunk_size: int = CHUNK_SIZE) -> DigestSet:
    """单次遍历计算流的多算法摘要

    流从当前位置读到末尾，不会回退；读取错误直接抛给调用方。

    Args:
        stream: 二进制输入流
        chunk_size: 读取块大小

    Returns:
        DigestSet: 摘要结果
    """
    digest = MultiDigest()
    while True:
        chunk = stream.read(chunk_size)
        if not chunk:
            break
        digest.update(chunk)
    return digest.result()


def calc_file_digest(file_path: Union[str, Path], chunk_size: int = CHUNK_SIZE) -> DigestSet:
    """计算文件的多算法摘要

    Raises:
        OSError: 文件不存在或读取失败
    """
    with open(file_path, 'rb') as f:
        return calc_multi_digest(f, chunk_size)


def calc_data_digest(data: bytes) -> DigestSet:
    """计算内存数据的多算法摘要"""
    digest = MultiDigest()
    digest.update(data)
    return digest.result()
