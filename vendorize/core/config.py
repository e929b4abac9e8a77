"""集中配置管理

注册表地址、存储目录、超时等统一从这里取，
支持从 YAML 文件加载 + 编程式覆盖。
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field

from vendorize.core.exceptions import ConfigError
from vendorize.utils.file_io import load_yaml

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """全局配置"""

    # 目录与文件
    store_dir: str = "vendor"
    project_file: str = "composer.json"
    manifest_name: str = "composer.json"
    mapping_file: str = "mapping.json"
    loader_file: str = "autoload.php"
    installed_file: str = "installed.json"

    # 注册表与分支源 ({name} / {branch} / {sha} 占位符)
    registry_url: str = "https://repo.packagist.org/p2/{name}.json"
    branch_api_url: str = "https://api.github.com/repos/{name}/commits/{branch}"
    branch_dist_url: str = "https://api.github.com/repos/{name}/zipball/{sha}"
    branch_prefix: str = "dev-"

    # 运行时伪依赖，解析时跳过
    runtime_package: str = "php"
    php_binary: str = "php"

    # 网络
    request_timeout: int = 30
    download_timeout: int = 300
    user_agent: str = "vendorize/0.3"
    github_token: str = ""

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not self.github_token:
            self.github_token = os.getenv("VENDORIZE_GITHUB_TOKEN", "")
        for name in ("request_timeout", "download_timeout"):
            value = getattr(self, name)
            if not isinstance(value, int) or value <= 0:
                raise ConfigError(f"{name} 必须是正整数，实际: {value!r}")

    @classmethod
    def from_file(cls, path: str = "configs/vendorize.yml") -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        data = load_yaml(path)
        if not data:
            return cls()
        known = {f.name for f in cls.__dataclass_fields__.values()}
        matched = {k: v for k, v in data.items() if k in known}
        extra = {k: v for k, v in data.items() if k not in known}
        cfg = cls(**matched)
        cfg.extra = extra
        return cfg

    def to_dict(self) -> dict:
        from dataclasses import asdict
        data = asdict(self)
        if data.get("github_token"):
            data["github_token"] = "***"
        return data


# 全局默认配置，首次 import 时不加载文件；由 CLI 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = "configs/vendorize.yml") -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s", path)
    return _current
