"""
构建管道模块

使用管道模式协调单个架构的构建步骤。
"""

import time
from pathlib import Path
from typing import List, Optional

from ..config.schema import PackageConfig
from ..utils import format_size
from ..utils.logging import info, success, error, debug, LogStage
from .archive import default_mtime
from .build_context import BuildContext, BuildError, ProgressCallback
from .steps.build_step import BuildStep
from .steps.data_archive_step import DataArchiveStep
from .steps.control_archive_step import ControlArchiveStep
from .steps.package_assembly_step import PackageAssemblyStep


class BuildPipeline:
    """构建管道，负责协调构建步骤的执行"""

    def __init__(self):
        self._steps: List[BuildStep] = []
        self._init_default_steps()

    def _init_default_steps(self):
        """初始化默认的构建步骤"""
        self._steps = [
            DataArchiveStep(),
            ControlArchiveStep(),
            PackageAssemblyStep(),
        ]

    def add_step(self, step: BuildStep, position: Optional[int] = None):
        """添加构建步骤"""
        if position is None:
            self._steps.append(step)
        else:
            self._steps.insert(position, step)

    def remove_step(self, step_name: str):
        """移除构建步骤"""
        self._steps = [step for step in self._steps if step.name != step_name]

    def get_steps(self) -> List[BuildStep]:
        """获取所有构建步骤"""
        return self._steps.copy()

    def execute(
        self,
        config: PackageConfig,
        architecture: str,
        output_path: Path,
        work_dir: Path,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> BuildContext:
        """为一个架构执行构建管道

        Args:
            config: 构建描述
            architecture: 目标架构
            output_path: 输出 .deb 路径
            work_dir: 中间文件目录（调用方负责清理）
            progress_callback: 进度回调函数

        Returns:
            BuildContext: 构建上下文，包含所有构建结果

        Raises:
            BuildError: 构建失败
        """
        mtime = config.build.mtime if config.build.mtime is not None else default_mtime()
        context = BuildContext(
            config=config,
            architecture=architecture,
            output_path=Path(output_path),
            work_dir=Path(work_dir),
            mtime=mtime,
            progress_callback=progress_callback,
        )

        context.build_stats['start_time'] = time.time()

        try:
            info(f"开始构建: {config.package.name} {config.package.version} ({architecture})", stage=LogStage.BUILD)
            debug(
                f"构建配置: level={config.compression.level} mtime={mtime} mappings={len(config.data)}",
                stage=LogStage.BUILD,
            )

            for step in self._steps:
                info(f"执行步骤: {step.description}", stage=LogStage.BUILD)
                step.execute(context)

            context.build_stats['end_time'] = time.time()
            build_time = context.build_stats['end_time'] - context.build_stats['start_time']

            success(f"软件包构建成功: {context.output_path}", stage=LogStage.DONE)
            info(f"构建时间: {build_time:.1f}秒")
            info(f"安装大小: {context.build_stats['installed_size_kib']} KiB")
            info(f"最终大小: {format_size(context.build_stats['package_size'])}")

            return context

        except Exception as e:
            context.build_stats['end_time'] = time.time()
            error(f"构建失败: {e}", stage=LogStage.BUILD)
            if isinstance(e, BuildError):
                raise
            raise BuildError(f"构建失败: {e}") from e

    def validate_pipeline(self) -> List[str]:
        """验证构建管道的完整性

        Returns:
            List[str]: 验证错误列表，空列表表示验证通过
        """
        errors = []

        if not self._steps:
            errors.append("构建管道中没有步骤")
            return errors

        prev_end = 0
        for step in self._steps:
            start, end = step.get_progress_range()
            if start != prev_end:
                errors.append(f"步骤 '{step.name}' 的进度范围不连续: 期望起始 {prev_end}%, 实际 {start}%")
            if start >= end:
                errors.append(f"步骤 '{step.name}' 的进度范围无效: {start}% - {end}%")
            prev_end = end

        if prev_end != 100:
            errors.append(f"构建管道的总进度范围不是100%: {prev_end}%")

        return errors
