"""
Digest 命令实现

计算文件的 MD5 / SHA1 / SHA256 摘要（一次读取）。
"""

import json
from pathlib import Path
from typing import List

import typer
from rich.console import Console
from rich.table import Table

from ...build.digest import calc_file_digest


console = Console()


def digest_command(
    files: List[Path] = typer.Argument(..., help="要计算摘要的文件"),
    json_output: bool = typer.Option(False, "--json", help="输出 JSON 格式"),
) -> None:
    """计算文件摘要

    示例:
        debpack digest dist/example-app_1.0.0-1_amd64.deb
        debpack digest dist/*.deb --json
    """
    results = []
    failed = False

    for path in files:
        try:
            digests = calc_file_digest(path)
        except OSError as e:
            console.print(f"[red]读取文件失败 {path}: {e}[/red]")
            failed = True
            continue
        results.append({'file': str(path), 'size': path.stat().st_size, **digests.to_dict()})

    if json_output:
        console.print_json(json.dumps(results, ensure_ascii=False))
    elif results:
        table = Table(title="文件摘要")
        table.add_column("文件", style="cyan")
        table.add_column("MD5")
        table.add_column("SHA1")
        table.add_column("SHA256")
        for item in results:
            table.add_row(item['file'], item['md5'], item['sha1'], item['sha256'])
        console.print(table)

    if failed:
        raise typer.Exit(1)
