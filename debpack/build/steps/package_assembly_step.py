"""
包组装步骤模块

把 control.tar.gz 和 data.tar.gz 组装为最终的 .deb，并计算其摘要。
"""

from ...utils import ensure_directory, format_size
from ...utils.logging import info, success, error, LogStage
from ..build_context import BuildContext, BuildError
from ..deb import DebWriteError, write_deb
from ..digest import calc_file_digest
from .build_step import BuildStep


class PackageAssemblyStep(BuildStep):
    """包组装步骤"""

    def __init__(self):
        super().__init__("assemble", "组装 .deb 文件")

    def get_progress_range(self) -> tuple[int, int]:
        return (80, 100)

    def execute(self, context: BuildContext) -> None:
        """组装最终的 .deb"""
        if context.control_archive is None or context.data_archive is None:
            raise BuildError("缺少必要的构建数据")

        progress_start, progress_end = self.get_progress_range()
        info(f"组装软件包: {context.output_path}", stage=LogStage.ASSEMBLE)
        context.report("组装软件包", progress_start, "写入 .deb...")

        try:
            ensure_directory(context.output_path.parent)
            size = write_deb(context.output_path, context.control_archive, context.data_archive, context.mtime)
            digests = calc_file_digest(context.output_path)
        except (DebWriteError, OSError) as e:
            error(f"组装软件包失败: {e}", stage=LogStage.ASSEMBLE)
            raise BuildError(f"组装软件包失败: {e}") from e

        context.package_digests = digests
        context.build_stats['package_size'] = size
        context.report("组装软件包", progress_end, f"完成，大小 {format_size(size)}")

        success(f"软件包组装完成 - 大小: {format_size(size)}", stage=LogStage.ASSEMBLE)
        info(f"  MD5:    {digests.md5}", stage=LogStage.DIGEST)
        info(f"  SHA1:   {digests.sha1}", stage=LogStage.DIGEST)
        info(f"  SHA256: {digests.sha256}", stage=LogStage.DIGEST)
