"""CLI — 查询命令"""

from __future__ import annotations

import sys

import click

from vendorize.cli import handle_errors
from vendorize.core import semver


def register(group: click.Group) -> None:
    group.add_command(show)
    group.add_command(find_class)
    group.add_command(satisfies_cmd)


@click.command()
@handle_errors
def show() -> None:
    """列出已安装的包"""
    from vendorize.core.manager import PackageManager
    packages = PackageManager().installed()
    if not packages:
        click.echo("没有已安装的包。")
        return
    for p in packages:
        click.echo(f"  {p.name:30s} {p.version:16s} [{p.origin.value}]  {p.store_path}")


@click.command(name="find")
@click.argument("class_name")
@handle_errors
def find_class(class_name: str) -> None:
    """查询类所在文件"""
    from vendorize.core.manager import PackageManager
    path = PackageManager().find_class(class_name)
    if path is None:
        click.echo(f"未找到: {class_name}")
        sys.exit(1)
    click.echo(path)


@click.command(name="satisfies")
@click.argument("version")
@click.argument("constraint")
def satisfies_cmd(version: str, constraint: str) -> None:
    """检查版本是否满足约束（满足退出码 0，否则 1）"""
    ok = semver.satisfies(version, constraint)
    click.echo(f"{version} {'满足' if ok else '不满足'} '{constraint}'")
    sys.exit(0 if ok else 1)
