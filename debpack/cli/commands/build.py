"""
Build 命令实现

从构建描述生成 .deb 软件包。
"""

import traceback
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from ...config import load_config, ConfigError, ConfigValidationError
from ...utils import format_size
from ...utils.logging import set_log_level, set_log_file, OutputLevel


console = Console()


def build_command(
    config: str = typer.Option(..., "--config", "-c", help="配置文件路径"),
    output: str = typer.Option("dist", "--output", "-o", help="输出目录"),
    arch: Optional[List[str]] = typer.Option(None, "--arch", "-a", help="只构建指定架构（可重复）"),
    force: bool = typer.Option(False, "--force", "-f", help="强制覆盖已存在的 .deb"),
    keep_work_dir: bool = typer.Option(False, "--keep-work-dir", help="保留中间文件用于排查"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="日志输出文件"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出详细调试日志 (DEBUG 级别)"),
) -> None:
    """构建 .deb 软件包

    示例:
        debpack build -c debpack.yaml -o dist/
        debpack build -c debpack.yaml -o dist/ --arch amd64
    """
    from ...build.builder import Builder

    config_path = Path(config)
    output_dir = Path(output)

    set_log_level(OutputLevel.DEBUG if verbose else OutputLevel.INFO)

    if log_file:
        try:
            set_log_file(log_file)
        except OSError as e:
            console.print(f"[yellow]无法写入日志文件 {log_file}: {e}[/yellow]")

    try:
        console.print(f"[cyan]正在加载配置文件[/cyan]: {config_path}")
        config_obj = load_config(config_path)
    except ConfigValidationError as e:
        console.print("[red]配置验证失败:[/red]")
        console.print(e.format_errors())
        raise typer.Exit(1)
    except ConfigError as e:
        console.print(f"[red]配置错误[/red]: {e}")
        raise typer.Exit(1)

    try:
        selected = config_obj.select_architectures(arch)
    except ValueError as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    if not force:
        existing = [
            output_dir / config_obj.get_package_filename(a)
            for a in selected
            if (output_dir / config_obj.get_package_filename(a)).exists()
        ]
        if existing:
            for path in existing:
                console.print(f"[red]输出文件已存在: {path}[/red]")
            console.print("使用 --force 参数强制覆盖")
            raise typer.Exit(1)

    def progress_callback(stage: str, current: int, total: int, message: str = "") -> None:
        """进度回调函数，仅在详细模式下显示"""
        if verbose and total > 0:
            console.print(f"[blue]{stage}[/blue]: {message} ({current * 100 // total}%)")

    builder = Builder(keep_work_dir=keep_work_dir)

    try:
        result = builder.build(config_obj, output_dir, selected, progress_callback=progress_callback)
    except Exception as e:
        console.print(f"[red]✗ 构建过程中发生意外错误[/red]: {e}")
        if log_file:
            console.print(f"[yellow]详细错误信息:[/yellow]\n{traceback.format_exc()}")
        raise typer.Exit(1)

    if not result.success:
        console.print(f"[red]✗ 构建失败[/red]: {result.error}")
        if log_file:
            console.print(f"[yellow]请检查日志文件 {log_file} 获取详细信息。[/yellow]")
        raise typer.Exit(1)

    table = Table(title="构建结果")
    table.add_column("架构", style="cyan")
    table.add_column("文件", style="green")
    table.add_column("大小", justify="right")
    table.add_column("SHA256", style="dim")

    for package in result.packages:
        table.add_row(
            package.architecture,
            str(package.output_path),
            format_size(package.size),
            package.digests.sha256,
        )

    console.print(table)
    console.print(f"[green]✓ 构建完成[/green]: {len(result.packages)} 个软件包, 用时 {result.build_time:.1f}秒")
