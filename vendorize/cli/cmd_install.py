"""CLI — 安装与映射命令"""

from __future__ import annotations

import click

from vendorize.cli import handle_errors
from vendorize.core.dep.models import Requirement
from vendorize.core.dep.resolver import InstallSession


def register(group: click.Group) -> None:
    group.add_command(install)
    group.add_command(require)
    group.add_command(dump_autoload)


def _summary(session: InstallSession) -> None:
    if not session.installed:
        click.echo("没有需要安装的包。")
        return
    for pkg in session.installed.values():
        click.echo(f"  {pkg.name:30s} {pkg.version:16s} [{pkg.origin.value}]")
    click.echo(f"共 {len(session.installed)} 个包")


@click.command()
@click.argument("packages", nargs=-1)
@handle_errors
def install(packages: tuple[str, ...]) -> None:
    """安装依赖（参数形如 vendor/name:约束；不指定则读取项目文件 require 段）"""
    from vendorize.core.manager import PackageManager
    pm = PackageManager()
    reqs = [Requirement.parse(p) for p in packages] if packages else None
    _summary(pm.install(reqs))


@click.command()
@click.argument("name")
@click.argument("constraint", default="*")
@handle_errors
def require(name: str, constraint: str) -> None:
    """添加一条需求到项目文件并安装"""
    from vendorize.core.manager import PackageManager
    pm = PackageManager()
    _summary(pm.require(name, constraint))


@click.command(name="dump-autoload")
@handle_errors
def dump_autoload() -> None:
    """按已安装记录重新生成类映射"""
    from vendorize.core.manager import PackageManager
    pm = PackageManager()
    table = pm.dump_autoload()
    click.echo(
        f"映射已生成: {len(table.prefix_rules)} 条前缀规则, "
        f"{len(table.class_index)} 个类, {len(table.always_load)} 个常驻文件"
    )
    click.echo(f"  {pm.loader_path}")
