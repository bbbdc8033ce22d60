"""
debpack CLI 主入口

提供命令行接口，支持 build/validate/digest 等命令。
"""

import sys
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .. import __version__
from ..utils import configure_logging, OutputLevel
from .commands import build, digest, validate


app = typer.Typer(
    name="debpack",
    help="debpack - Debian 二进制软件包构建工具",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

console = Console()


def version_callback(value: bool) -> None:
    """显示版本信息"""
    if value:
        console.print(f"debpack v{__version__}")
        raise typer.Exit()


def verbose_callback(verbose: bool) -> None:
    """配置详细输出"""
    configure_logging(level=OutputLevel.DEBUG if verbose else OutputLevel.INFO)


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="显示版本信息"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        callback=verbose_callback,
        help="启用详细输出"
    )
) -> None:
    """debpack - Debian 二进制软件包构建工具

    使用 --help 查看可用命令的详细信息。
    """
    pass


app.command("build", help="构建 .deb 软件包")(build.build_command)
app.command("validate", help="验证配置文件")(validate.validate_command)
app.command("digest", help="计算文件的 MD5/SHA1/SHA256 摘要")(digest.digest_command)


@app.command("info")
def info_command() -> None:
    """显示系统信息"""
    import pydantic
    from ruamel.yaml import __version__ as ruamel_version

    table = Table(title="版本信息")
    table.add_column("组件", style="cyan")
    table.add_column("版本", style="green")

    table.add_row("debpack", __version__)
    table.add_row("Python", f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}")
    table.add_row("pydantic", pydantic.VERSION)
    table.add_row("ruamel.yaml", ruamel_version)

    console.print(table)


@app.command("example")
def example_command(
    output: str = typer.Option(
        "debpack.yaml",
        "--output", "-o",
        help="输出配置文件路径"
    )
) -> None:
    """生成示例配置文件"""
    from ..config import save_config
    from ..config.schema import ControlModel, DataMappingModel, PackageConfig, PackageModel

    config = PackageConfig(
        package=PackageModel(
            name="example-app",
            version="1.0.0-1",
            architecture=["amd64", "arm64"],
            maintainer="Example Team <team@example.com>",
            homepage="https://example.com",
            section="utils",
            description="示例应用\n这是一个示例软件包。",
        ),
        control=ControlModel(
            depends=["libc6 (>= 2.31)"],
            conffiles=["/etc/example-app/config.yaml"],
            post_install="scripts/postinst.sh",
            pre_remove="scripts/prerm.sh",
        ),
        data=[
            DataMappingModel(source="build/example-app_%arch%", target="usr/bin/example-app"),
            DataMappingModel(source="configs/config.yaml", target="etc/example-app/config.yaml"),
        ],
        exclude=["*.pyc", "__pycache__/"],
    )

    try:
        save_config(config, output)
    except Exception as e:
        console.print(f"[red]生成示例配置失败: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"✓ 示例配置文件已生成: [green]{output}[/green]")
    console.print("请根据需要修改配置文件，然后运行:")
    console.print(f"  [cyan]debpack build -c {output} -o dist/[/cyan]")


if __name__ == "__main__":
    app()
