"""vendorize 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

from __future__ import annotations

import functools
from collections.abc import Callable
from typing import Any

import click

from vendorize import __version__
from vendorize.core.config import init_config
from vendorize.core.exceptions import VendorizeError, describe
from vendorize.utils.logger import setup_logging


def handle_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    """业务异常转换为 ClickException（单行 code: message 原因链，退出码 1）"""

    @functools.wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except VendorizeError as e:
            raise click.ClickException(describe(e)) from e

    return wrapper


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config", "config_path", default="configs/vendorize.yml",
    envvar="VENDORIZE_CONFIG", help="配置文件路径（不存在则使用默认配置）",
)
@handle_errors
def main(config_path: str) -> None:
    """vendorize - 轻量级 PHP 依赖包管理器"""
    setup_logging()
    init_config(config_path)


# 注册各领域子命令
from vendorize.cli.cmd_install import register as _reg_install  # noqa: E402
from vendorize.cli.cmd_query import register as _reg_query  # noqa: E402

_reg_install(main)
_reg_query(main)
