"""
.deb 容器与端到端构建单元测试

测试 ar 成员头、.deb 布局，以及 Builder 从配置到 .deb 的完整流程。
"""

import hashlib
import io
import stat
import tarfile
from unittest.mock import patch

import pytest

from debpack.build.builder import Builder
from debpack.build.deb import (
    AR_MAGIC,
    DEBIAN_BINARY,
    DebWriteError,
    ar_member_header,
    write_deb,
)
from debpack.config.loader import ConfigLoader
from debpack.config.schema import PackageConfig


def parse_ar(data: bytes):
    """解析 ar 归档，返回 [(名称, 头, 内容)]"""
    assert data[:8] == AR_MAGIC
    members = []
    offset = 8
    while offset < len(data):
        header = data[offset:offset + 60]
        name = header[:16].decode('ascii').rstrip()
        size = int(header[48:58].decode('ascii').strip())
        assert header[58:60] == b"`\n"
        body = data[offset + 60:offset + 60 + size]
        members.append((name, header, body))
        offset += 60 + size + (size % 2)
    return members


def read_tar(data: bytes):
    """读取 tar.gz 内容 {名称: (TarInfo, 内容)}"""
    result = {}
    with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as tar:
        for member in tar.getmembers():
            content = tar.extractfile(member).read() if member.isfile() else None
            result[member.name] = (member, content)
    return result


class TestArHeader:
    """ar 成员头测试"""

    def test_header_layout(self):
        """测试 60 字节头的字段位置"""
        header = ar_member_header("debian-binary", 4, 1700000000)

        assert len(header) == 60
        assert header[:16] == b"debian-binary   "
        assert header[16:28] == b"1700000000  "
        assert header[28:34] == b"0     "
        assert header[34:40] == b"0     "
        assert header[40:48] == b"100644  "
        assert header[48:58] == b"4         "
        assert header[58:] == b"`\n"

    def test_name_too_long(self):
        """测试成员名超过 16 字节"""
        with pytest.raises(DebWriteError):
            ar_member_header("a-very-long-member-name", 1, 0)


class TestWriteDeb:
    """write_deb 测试"""

    def test_member_order_and_padding(self, tmp_path):
        """测试成员顺序和奇数长度补齐"""
        control = tmp_path / "control.tar.gz"
        data = tmp_path / "data.tar.gz"
        control.write_bytes(b"abc")
        data.write_bytes(b"defg")

        output = tmp_path / "out.deb"
        size = write_deb(output, control, data, mtime=0)

        raw = output.read_bytes()
        assert size == len(raw)
        members = parse_ar(raw)
        assert [m[0] for m in members] == ["debian-binary", "control.tar.gz", "data.tar.gz"]
        assert members[0][2] == DEBIAN_BINARY
        assert members[1][2] == b"abc"
        assert members[2][2] == b"defg"
        # 3 字节的 control 之后补一个换行
        assert len(raw) == 8 + (60 + 4) + (60 + 3 + 1) + (60 + 4)

    def test_missing_archive(self, tmp_path):
        """测试输入归档不存在"""
        data = tmp_path / "data.tar.gz"
        data.write_bytes(b"x")
        with pytest.raises(DebWriteError):
            write_deb(tmp_path / "out.deb", tmp_path / "missing.tar.gz", data, mtime=0)


@pytest.fixture
def project(tmp_path):
    """创建一个带二进制、文档目录、配置文件和维护脚本的项目"""
    root = tmp_path / "project"
    (root / "build").mkdir(parents=True)
    (root / "doc").mkdir()
    (root / "etc").mkdir()
    (root / "scripts").mkdir()

    for arch in ("amd64", "arm64"):
        binary = root / "build" / f"app_{arch}"
        binary.write_bytes(f"binary for {arch}".encode())
        binary.chmod(0o755)
    (root / "doc" / "README").write_text("readme\n")
    (root / "doc" / "notes.tmp").write_text("scratch\n")
    (root / "etc" / "app.conf").write_bytes(b"aaaaa")
    (root / "scripts" / "postinst.sh").write_text("#!/bin/sh\nset -e\n")

    data = {
        'package': {
            'name': 'test-app',
            'version': '1.0.0-1',
            'architecture': ['amd64', 'arm64'],
            'maintainer': 'Test <test@example.com>',
            'description': 'Test application\nLonger description.',
        },
        'control': {
            'depends': ['libc6'],
            'conffiles': ['etc/test-app/app.conf'],
            'post_install': 'scripts/postinst.sh',
            'pre_remove': 'scripts/missing-prerm.sh',
        },
        'data': [
            {'source': 'build/app_%arch%', 'target': 'usr/bin/test-app'},
            {'source': 'doc', 'target': 'usr/share/doc/test-app'},
            {'source': 'etc/app.conf', 'target': 'etc/test-app/app.conf'},
        ],
        'exclude': ['*.tmp'],
        'build': {'mtime': 1700000000},
    }
    return ConfigLoader().load_from_dict(data, root)


class TestBuilder:
    """Builder 端到端测试"""

    def test_build_all_architectures(self, project, tmp_path):
        """测试为每个架构生成 .deb"""
        output_dir = tmp_path / "dist"
        result = Builder().build(project, output_dir)

        assert result.success, result.error
        assert [p.architecture for p in result.packages] == ["amd64", "arm64"]
        for package in result.packages:
            assert package.output_path == output_dir / f"test-app_1.0.0-1_{package.architecture}.deb"
            raw = package.output_path.read_bytes()
            assert package.size == len(raw)
            assert package.digests.sha256 == hashlib.sha256(raw).hexdigest()
            assert package.file_count == 3

    def test_package_contents(self, project, tmp_path):
        """测试 .deb 中的数据与控制信息"""
        result = Builder().build(project, tmp_path / "dist", ["amd64"])
        assert result.success, result.error

        members = parse_ar(result.packages[0].output_path.read_bytes())
        data = read_tar(members[2][2])
        control = read_tar(members[1][2])

        assert data["usr/bin/test-app"][1] == b"binary for amd64"
        assert data["usr/bin/test-app"][0].mode == 0o755
        assert data["usr/share/doc/test-app/README"][1] == b"readme\n"
        assert "usr/share/doc/test-app/notes.tmp" not in data
        assert data["usr"][0].isdir()
        assert data["etc/test-app"][0].isdir()

        assert set(control) == {"control", "md5sums", "conffiles", "postinst"}
        assert control["conffiles"][1] == b"/etc/test-app/app.conf\n"
        assert control["postinst"][1] == b"#!/bin/sh\nset -e\n"
        assert stat.S_IMODE(control["postinst"][0].mode) == 0o755

        md5sums = control["md5sums"][1].decode('utf-8').splitlines()
        assert "594f803b380a41396ed63dca39503542  etc/test-app/app.conf" in md5sums
        assert len(md5sums) == 3

        stanza = control["control"][1].decode('utf-8')
        assert "Package: test-app\n" in stanza
        assert "Architecture: amd64\n" in stanza
        assert "Depends: libc6\n" in stanza
        assert "Installed-Size: 1\n" in stanza
        assert stanza.endswith("Description: Test application\n Longer description.\n")

    def test_reproducible_build(self, project, tmp_path):
        """测试固定时间戳时两次构建结果一致"""
        first = Builder().build(project, tmp_path / "one", ["amd64"])
        second = Builder().build(project, tmp_path / "two", ["amd64"])

        assert first.packages[0].digests == second.packages[0].digests

    def test_unknown_architecture(self, project, tmp_path):
        """测试请求未声明的架构"""
        result = Builder().build(project, tmp_path / "dist", ["riscv64"])
        assert not result.success
        assert "riscv64" in result.error

    def test_missing_source_fails(self, tmp_path):
        """测试数据源缺失时构建失败并清理工作目录"""
        config = PackageConfig.from_dict({
            'package': {
                'name': 'broken',
                'version': '1.0',
                'maintainer': 'm',
                'description': 'd',
            },
            'data': [{'source': str(tmp_path / "missing"), 'target': 'usr/bin/broken'}],
        })

        work_dir = tmp_path / "work"
        work_dir.mkdir()
        with patch('debpack.build.builder.get_temp_dir', return_value=work_dir):
            result = Builder().build(config, tmp_path / "dist")

        assert not result.success
        assert "数据源不存在" in result.error
        assert not work_dir.exists()
        assert not (tmp_path / "dist" / "broken_1.0_all.deb").exists()

    def test_keep_work_dir(self, project, tmp_path):
        """测试保留中间文件"""
        work_dir = tmp_path / "work"
        work_dir.mkdir()
        with patch('debpack.build.builder.get_temp_dir', return_value=work_dir):
            result = Builder(keep_work_dir=True).build(project, tmp_path / "dist", ["amd64"])

        assert result.success, result.error
        assert (work_dir / "data.tar.gz").exists()
        assert (work_dir / "control.tar.gz").exists()
        assert (work_dir / "control" / "conffiles").exists()

    def test_validate_build_pipeline(self):
        """测试默认管道有效"""
        assert Builder().validate_build_pipeline() == []
