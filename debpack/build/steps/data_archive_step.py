"""
数据归档步骤模块

收集数据文件并写入 data.tar.gz，同时记录每个文件的摘要。
"""

from ...utils import format_size
from ...utils.logging import info, success, debug, error, LogStage
from ..archive import ArchiveError, TarGzWriter
from ..build_context import BuildContext, BuildError
from ..collector import CollectError, DataCollector, parent_directories
from .build_step import BuildStep

DATA_ARCHIVE_NAME = "data.tar.gz"


class DataArchiveStep(BuildStep):
    """数据归档步骤"""

    def __init__(self):
        super().__init__("data", "写入数据归档 data.tar.gz")
        self.collector = DataCollector()

    def get_progress_range(self) -> tuple[int, int]:
        return (0, 45)

    def execute(self, context: BuildContext) -> None:
        """收集并写入数据文件"""
        config = context.config
        progress_start, progress_end = self.get_progress_range()
        info(f"收集数据文件 ({context.architecture})", stage=LogStage.COLLECT)

        try:
            entries = self.collector.collect(config.data, context.architecture, config.exclude or [])
        except CollectError as e:
            error(f"数据收集失败: {e}", stage=LogStage.COLLECT)
            raise BuildError(f"数据收集失败: {e}") from e

        stats = self.collector.get_statistics()
        context.entries = entries
        context.build_stats['total_files'] = stats['total_files']
        context.build_stats['total_size'] = stats['total_size']
        info(f"  文件数量: {stats['total_files']}", stage=LogStage.COLLECT)
        info(f"  总大小: {format_size(stats['total_size'])}", stage=LogStage.COLLECT)

        archive_path = context.work_dir / DATA_ARCHIVE_NAME
        files = [entry for entry in entries if not entry.is_directory]
        directories = sorted(
            set(parent_directories([entry.target for entry in entries]))
            | {entry.target for entry in entries if entry.is_directory}
        )

        try:
            with TarGzWriter(archive_path, config.compression.level, context.mtime) as writer:
                # 目录先于文件写入，保证解包时父目录已存在
                for directory in directories:
                    writer.write_directory(directory)

                for index, entry in enumerate(files):
                    record = writer.write_file(entry.source, entry.target)
                    debug(f"{record.identity}  {record.path}", stage=LogStage.DATA)
                    current = progress_start + int((index + 1) / len(files) * (progress_end - progress_start))
                    context.report("写入数据", current, entry.target)

                context.data_records = list(writer.records)
        except ArchiveError as e:
            error(f"写入数据归档失败: {e}", stage=LogStage.DATA)
            raise BuildError(f"写入数据归档失败: {e}") from e

        context.data_archive = archive_path
        context.build_stats['data_archive_size'] = archive_path.stat().st_size
        context.report("写入数据", progress_end, f"{len(files)} 个文件")

        success(
            f"数据归档完成 - {len(directories)} 个目录, {len(files)} 个文件, "
            f"大小: {format_size(context.build_stats['data_archive_size'])}",
            stage=LogStage.DATA,
        )
