"""
tar+gzip 归档写入器单元测试

测试条目写入、内容标识、生命周期和错误分类。
"""

import gzip
import hashlib
import io
import os
import tarfile
from unittest.mock import patch

import pytest

from debpack.build.archive import (
    ArchiveError,
    ArchiveIOError,
    DuplicateEntryError,
    InvalidStateError,
    ResourceUnavailableError,
    TarGzWriter,
    default_mtime,
)


def _read_members(archive):
    """读取归档中的所有条目 {名称: (TarInfo, 内容)}"""
    members = {}
    with tarfile.open(archive, "r:gz") as tar:
        for member in tar.getmembers():
            content = None
            if member.isfile():
                content = tar.extractfile(member).read()
            members[member.name] = (member, content)
    return members


class TestWriteData:
    """write_data 测试"""

    def test_round_trip(self, tmp_path):
        """测试写入后读回的内容一致"""
        archive = tmp_path / "out.tar.gz"
        payload = b"some bytes\x00\x01\x02"

        with TarGzWriter(archive, mtime=1000) as writer:
            record = writer.write_data("etc/app/data.bin", payload)

        assert record.path == "etc/app/data.bin"
        assert record.size == len(payload)

        members = _read_members(archive)
        member, content = members["etc/app/data.bin"]
        assert content == payload
        assert member.size == len(payload)

    def test_hello_identity(self, tmp_path):
        """测试内存条目的内容标识为内容的 MD5"""
        with TarGzWriter(tmp_path / "out.tar.gz") as writer:
            record = writer.write_data("hello.txt", b"bbbbb")

        assert record.path == "hello.txt"
        assert record.identity == hashlib.md5(b"bbbbb").hexdigest()

    def test_identity_depends_on_content_only(self, tmp_path):
        """测试相同内容不同路径的标识相同"""
        with TarGzWriter(tmp_path / "out.tar.gz") as writer:
            first = writer.write_data("a/one.txt", b"same")
            second = writer.write_data("b/two.txt", b"same")
            third = writer.write_data("c/three.txt", b"other")

        assert first.identity == second.identity
        assert first.path != second.path
        assert first.identity != third.identity

    def test_header_fields(self, tmp_path):
        """测试条目头：权限 0644、属主 root、固定时间戳"""
        archive = tmp_path / "out.tar.gz"
        with TarGzWriter(archive, mtime=1234567890) as writer:
            writer.write_data("usr/share/doc/app/README", b"readme")

        member, _ = _read_members(archive)["usr/share/doc/app/README"]
        assert member.mode == 0o644
        assert member.uid == 0
        assert member.gid == 0
        assert member.uname == "root"
        assert member.gname == "root"
        assert member.mtime == 1234567890

    def test_empty_data(self, tmp_path):
        """测试写入空内容"""
        archive = tmp_path / "out.tar.gz"
        with TarGzWriter(archive) as writer:
            record = writer.write_data("empty", b"")

        assert record.size == 0
        assert record.identity == hashlib.md5(b"").hexdigest()
        assert _read_members(archive)["empty"][1] == b""

    def test_records_keep_write_order(self, tmp_path):
        """测试记录按写入顺序保存"""
        with TarGzWriter(tmp_path / "out.tar.gz") as writer:
            writer.write_data("z", b"1")
            writer.write_data("a", b"2")
            writer.write_data("m", b"3")

        assert [r.path for r in writer.records] == ["z", "a", "m"]


class TestWriteFile:
    """write_file 测试"""

    def test_known_identity(self, tmp_path):
        """测试磁盘文件的内容标识"""
        source = tmp_path / "test.log"
        source.write_bytes(b"aaaaa")

        with TarGzWriter(tmp_path / "out.tar.gz") as writer:
            record = writer.write_file(source, "var/log/test.log")

        assert record.path == "var/log/test.log"
        assert record.identity == "594f803b380a41396ed63dca39503542"

    def test_size_and_payload(self, tmp_path):
        """测试条目头大小与内容逐字节一致"""
        payload = bytes(range(256)) * 300
        source = tmp_path / "blob.bin"
        source.write_bytes(payload)
        archive = tmp_path / "out.tar.gz"

        with TarGzWriter(archive) as writer:
            record = writer.write_file(source, "usr/lib/app/blob.bin")

        member, content = _read_members(archive)["usr/lib/app/blob.bin"]
        assert member.size == len(payload)
        assert record.size == len(payload)
        assert content == payload

    def test_keeps_permission_bits(self, tmp_path):
        """测试保留源文件权限位，属主强制为 root"""
        source = tmp_path / "tool"
        source.write_bytes(b"#!/bin/sh\n")
        source.chmod(0o755)
        archive = tmp_path / "out.tar.gz"

        with TarGzWriter(archive) as writer:
            writer.write_file(source, "usr/bin/tool")

        member, _ = _read_members(archive)["usr/bin/tool"]
        assert member.mode == 0o755
        assert member.uid == 0
        assert member.uname == "root"

    def test_missing_source(self, tmp_path):
        """测试源文件不存在"""
        with TarGzWriter(tmp_path / "out.tar.gz") as writer:
            with pytest.raises(ResourceUnavailableError) as exc_info:
                writer.write_file(tmp_path / "missing.txt", "missing.txt")

        assert "missing.txt" in str(exc_info.value)
        assert exc_info.value.path.endswith("missing.txt")

    def test_directory_source(self, tmp_path):
        """测试源路径是目录"""
        source_dir = tmp_path / "dir"
        source_dir.mkdir()

        with TarGzWriter(tmp_path / "out.tar.gz") as writer:
            with pytest.raises(ArchiveError):
                writer.write_file(source_dir, "dir")

    @pytest.mark.skipif(not hasattr(os, "mkfifo"), reason="需要 FIFO 支持")
    def test_fifo_source(self, tmp_path):
        """测试 FIFO 源路径直接报错而不是阻塞"""
        fifo = tmp_path / "pipe"
        os.mkfifo(fifo)

        with TarGzWriter(tmp_path / "out.tar.gz") as writer:
            with pytest.raises(ResourceUnavailableError, match="不是普通文件"):
                writer.write_file(fifo, "var/pipe")
            assert writer.records == []

    def test_missing_source_does_not_break_archive(self, tmp_path):
        """测试源文件打开失败后仍可继续写入"""
        archive = tmp_path / "out.tar.gz"
        with TarGzWriter(archive) as writer:
            with pytest.raises(ResourceUnavailableError):
                writer.write_file(tmp_path / "missing.txt", "missing.txt")
            writer.write_data("ok.txt", b"ok")

        assert _read_members(archive)["ok.txt"][1] == b"ok"


class TestWriteDirectory:
    """write_directory 测试"""

    def test_directory_entry(self, tmp_path):
        """测试目录条目"""
        archive = tmp_path / "out.tar.gz"
        with TarGzWriter(archive) as writer:
            writer.write_directory("usr")
            writer.write_directory("usr/bin")
            writer.write_data("usr/bin/tool", b"x")

        members = _read_members(archive)
        assert members["usr"][0].isdir()
        assert members["usr/bin"][0].mode == 0o755
        # 目录不产生摘要记录
        assert [r.path for r in writer.records] == ["usr/bin/tool"]


class TestLifecycle:
    """生命周期测试"""

    def test_open_classmethod(self, tmp_path):
        """测试 open 与构造等价"""
        writer = TarGzWriter.open(tmp_path / "out.tar.gz", mtime=5)
        assert writer.mtime == 5
        writer.close()
        assert writer.closed

    def test_write_after_close(self, tmp_path):
        """测试关闭后写入"""
        source = tmp_path / "src.txt"
        source.write_bytes(b"x")

        writer = TarGzWriter(tmp_path / "out.tar.gz")
        writer.close()

        with pytest.raises(InvalidStateError):
            writer.write_data("a", b"x")
        with pytest.raises(InvalidStateError):
            writer.write_file(source, "b")
        with pytest.raises(InvalidStateError):
            writer.write_directory("c")

    def test_double_close(self, tmp_path):
        """测试重复关闭会报错"""
        writer = TarGzWriter(tmp_path / "out.tar.gz")
        writer.close()
        with pytest.raises(InvalidStateError):
            writer.close()

    def test_context_manager_closes(self, tmp_path):
        """测试 with 语句退出时关闭"""
        with TarGzWriter(tmp_path / "out.tar.gz") as writer:
            writer.write_data("a", b"x")
        assert writer.closed

    def test_context_manager_keeps_original_error(self, tmp_path):
        """测试主体异常不会被关闭过程覆盖"""
        with pytest.raises(RuntimeError, match="boom"):
            with TarGzWriter(tmp_path / "out.tar.gz") as writer:
                raise RuntimeError("boom")
        assert writer.closed

    def test_unwritable_destination(self, tmp_path):
        """测试输出路径无法创建"""
        with pytest.raises(ResourceUnavailableError) as exc_info:
            TarGzWriter(tmp_path / "no-such-dir" / "out.tar.gz")
        assert "out.tar.gz" in str(exc_info.value)

    def test_duplicate_entry(self, tmp_path):
        """测试重复条目路径"""
        with TarGzWriter(tmp_path / "out.tar.gz") as writer:
            writer.write_data("a.txt", b"1")
            with pytest.raises(DuplicateEntryError):
                writer.write_data("a.txt", b"2")

    def test_empty_entry_path(self, tmp_path):
        """测试空条目路径"""
        with TarGzWriter(tmp_path / "out.tar.gz") as writer:
            with pytest.raises(ArchiveError):
                writer.write_data("", b"1")

    def test_write_failure_breaks_archive(self, tmp_path):
        """测试写入失败后归档不可再写"""
        writer = TarGzWriter(tmp_path / "out.tar.gz")
        with patch.object(writer._tar, "addfile", side_effect=OSError("disk full")):
            with pytest.raises(ArchiveIOError, match="disk full"):
                writer.write_data("a", b"x")

        with pytest.raises(InvalidStateError):
            writer.write_data("b", b"y")
        writer.close()

    def test_close_error_reported(self, tmp_path):
        """测试关闭失败时每一层都被尝试并抛出第一个错误"""
        writer = TarGzWriter(tmp_path / "out.tar.gz")
        file_layer = writer._file
        with patch.object(writer._gzip, "close", side_effect=OSError("flush failed")):
            with pytest.raises(ArchiveIOError, match="flush failed"):
                writer.close()
        assert file_layer.closed
        assert writer.closed


class TestGzipLayer:
    """gzip 层测试"""

    def test_reproducible_output(self, tmp_path):
        """测试相同输入和时间戳产生相同字节"""
        outputs = []
        for name in ("one.tar.gz", "two.tar.gz"):
            path = tmp_path / name
            with TarGzWriter(path, mtime=42) as writer:
                writer.write_directory("etc")
                writer.write_data("etc/conf", b"key=value\n")
            outputs.append(path.read_bytes())

        assert outputs[0] == outputs[1]

    def test_gzip_magic(self, tmp_path):
        """测试输出为 gzip 格式"""
        path = tmp_path / "out.tar.gz"
        with TarGzWriter(path, compress_level=1) as writer:
            writer.write_data("a", b"x")

        raw = path.read_bytes()
        assert raw[:2] == b"\x1f\x8b"
        with gzip.open(io.BytesIO(raw)) as f:
            assert len(f.read()) % 512 == 0


class TestDefaultMtime:
    """default_mtime 测试"""

    def test_source_date_epoch(self):
        """测试使用 SOURCE_DATE_EPOCH"""
        with patch.dict("os.environ", {"SOURCE_DATE_EPOCH": "1700000000"}):
            assert default_mtime() == 1700000000

    def test_invalid_epoch_falls_back_to_now(self):
        """测试无效值时使用当前时间"""
        with patch.dict("os.environ", {"SOURCE_DATE_EPOCH": "abc"}):
            assert default_mtime() > 1700000000
