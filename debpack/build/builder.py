"""
构建器主类

按架构逐个运行构建管道，汇总每个 .deb 的结果。
"""

import shutil
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

from ..config.schema import PackageConfig
from ..utils import ensure_directory, get_temp_dir
from ..utils.logging import warning, LogStage
from .build_context import BuildError, ProgressCallback
from .build_pipeline import BuildPipeline
from .digest import DigestSet


@dataclass
class PackageArtifact:
    """单个架构的构建产物"""
    architecture: str
    output_path: Path
    size: int
    digests: DigestSet
    installed_size_kib: int = 0
    file_count: int = 0


@dataclass
class BuildResult:
    """构建结果"""
    success: bool
    packages: List[PackageArtifact] = field(default_factory=list)
    build_time: Optional[float] = None
    error: Optional[str] = None


class Builder:
    """软件包构建器

    每个架构使用独立的临时工作目录，构建结束（无论成功与否）后删除。
    """

    def __init__(self, keep_work_dir: bool = False):
        """初始化构建器

        Args:
            keep_work_dir: 是否保留中间文件（调试用）
        """
        self.keep_work_dir = keep_work_dir
        self.pipeline = BuildPipeline()

    def build(
        self,
        config: PackageConfig,
        output_dir: Path,
        architectures: Optional[List[str]] = None,
        progress_callback: Optional[ProgressCallback] = None,
    ) -> BuildResult:
        """构建软件包

        Args:
            config: 构建描述
            output_dir: 输出目录
            architectures: 只构建这些架构（默认全部）
            progress_callback: 进度回调函数

        Returns:
            BuildResult: 构建结果，失败时 success 为 False 并带有错误信息
        """
        start_time = time.time()
        packages: List[PackageArtifact] = []

        try:
            selected = config.select_architectures(architectures)
        except ValueError as e:
            return BuildResult(success=False, error=str(e))

        try:
            output_dir = ensure_directory(output_dir)
        except OSError as e:
            return BuildResult(success=False, error=f"无法创建输出目录 {output_dir}: {e}")

        for architecture in selected:
            output_path = output_dir / config.get_package_filename(architecture)
            work_dir = get_temp_dir(prefix=f"debpack_{architecture}_")
            try:
                context = self.pipeline.execute(config, architecture, output_path, work_dir, progress_callback)
            except BuildError as e:
                return BuildResult(
                    success=False,
                    packages=packages,
                    build_time=time.time() - start_time,
                    error=str(e),
                )
            finally:
                self._cleanup(work_dir)

            packages.append(PackageArtifact(
                architecture=architecture,
                output_path=output_path,
                size=context.build_stats['package_size'],
                digests=context.package_digests,
                installed_size_kib=context.build_stats['installed_size_kib'],
                file_count=context.build_stats['total_files'],
            ))

        return BuildResult(success=True, packages=packages, build_time=time.time() - start_time)

    def validate_build_pipeline(self) -> List[str]:
        """验证构建管道的完整性"""
        return self.pipeline.validate_pipeline()

    def _cleanup(self, work_dir: Path) -> None:
        if self.keep_work_dir:
            warning(f"保留中间文件: {work_dir}", stage=LogStage.DONE)
            return
        shutil.rmtree(work_dir, ignore_errors=True)
