"""
控制归档步骤模块

组装控制目录（control、md5sums、conffiles、维护脚本）并写入 control.tar.gz。
"""

from ...utils import format_size
from ...utils.logging import info, success, debug, error, LogStage
from ..archive import ArchiveError, TarGzWriter
from ..build_context import BuildContext, BuildError
from ..control import (
    CONTROL_NAME,
    MD5SUMS_NAME,
    ControlAssembler,
    ControlError,
    ControlFileRenderer,
    build_md5sums,
    installed_size_kib,
)
from .build_step import BuildStep

CONTROL_ARCHIVE_NAME = "control.tar.gz"
STAGING_DIR_NAME = "control"


class ControlArchiveStep(BuildStep):
    """控制归档步骤"""

    def __init__(self):
        super().__init__("control", "写入控制归档 control.tar.gz")
        self.assembler = ControlAssembler()
        self.renderer = ControlFileRenderer()

    def get_progress_range(self) -> tuple[int, int]:
        return (45, 80)

    def execute(self, context: BuildContext) -> None:
        """组装并写入控制归档"""
        if context.data_archive is None:
            raise BuildError("缺少数据归档，无法生成控制信息")

        progress_start, progress_end = self.get_progress_range()
        info(f"组装控制信息 ({context.architecture})", stage=LogStage.CONTROL)
        context.report("控制信息", progress_start, "组装控制目录...")

        staging_dir = context.work_dir / STAGING_DIR_NAME
        staging_dir.mkdir(parents=True, exist_ok=True)

        try:
            generated = self.assembler.materialize(context.config, staging_dir)
        except ControlError as e:
            error(f"组装控制目录失败: {e}", stage=LogStage.CONTROL)
            raise BuildError(f"组装控制目录失败: {e}") from e
        context.control_files = generated

        size_kib = installed_size_kib(context.data_records)
        context.build_stats['installed_size_kib'] = size_kib
        control_bytes = self.renderer.render(context.config, context.architecture, size_kib)
        md5sums_bytes = build_md5sums(context.data_records)
        debug(f"control:\n{control_bytes.decode('utf-8')}", stage=LogStage.CONTROL)

        archive_path = context.work_dir / CONTROL_ARCHIVE_NAME
        try:
            with TarGzWriter(archive_path, context.config.compression.level, context.mtime) as writer:
                writer.write_data(CONTROL_NAME, control_bytes)
                writer.write_data(MD5SUMS_NAME, md5sums_bytes)
                for path in generated:
                    writer.write_file(path, path.name)
        except ArchiveError as e:
            error(f"写入控制归档失败: {e}", stage=LogStage.CONTROL)
            raise BuildError(f"写入控制归档失败: {e}") from e

        context.control_archive = archive_path
        context.build_stats['control_archive_size'] = archive_path.stat().st_size
        context.report("控制信息", progress_end, "控制归档完成")

        names = [CONTROL_NAME, MD5SUMS_NAME] + [path.name for path in generated]
        success(
            f"控制归档完成 - {', '.join(names)}, 大小: {format_size(context.build_stats['control_archive_size'])}",
            stage=LogStage.CONTROL,
        )
