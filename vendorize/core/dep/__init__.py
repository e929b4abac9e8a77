"""依赖解析与安装

- models.py: 数据模型
- registry.py: 注册表 / 分支源查询
- virtual.py: 虚拟包（运行时能力）表
- resolver.py: FIFO 贪心解析
- installer.py: 下载、校验、解压、放置，失败回滚
"""

from vendorize.core.dep.installer import PackageInstaller, StoreTransaction
from vendorize.core.dep.models import (
    InstalledPackage,
    Manifest,
    Origin,
    Requirement,
    ResolvedVersion,
)
from vendorize.core.dep.registry import RegistryClient
from vendorize.core.dep.resolver import DependencyResolver, InstallSession
from vendorize.core.dep.virtual import VirtualCapabilities

__all__ = [
    "DependencyResolver",
    "InstallSession",
    "InstalledPackage",
    "Manifest",
    "Origin",
    "PackageInstaller",
    "RegistryClient",
    "Requirement",
    "ResolvedVersion",
    "StoreTransaction",
    "VirtualCapabilities",
]
