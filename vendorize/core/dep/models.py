"""依赖包数据模型

数据类:
- Requirement: 一条 (包名, 约束) 需求
- Distribution / ResolvedVersion: 解析结果
- InstalledPackage: 已安装记录
- AutoloadRules / Manifest: 包清单 (composer.json)
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from vendorize.core.exceptions import MissingManifestError
from vendorize.utils.file_io import load_json

DEFAULT_MANIFEST_NAME = "composer.json"


class Origin(str, Enum):
    """解析来源"""

    REGISTRY = "registry"
    BRANCH = "branch"
    VIRTUAL = "virtual"


@dataclass(frozen=True)
class Requirement:
    """解析队列中的一条需求"""

    name: str
    constraint: str = "*"

    @classmethod
    def parse(cls, token: str) -> Requirement:
        """解析 "vendor/name:constraint" 形式的命令行参数"""
        name, sep, constraint = token.strip().partition(":")
        return cls(name=name.strip(), constraint=constraint.strip() if sep else "*")


@dataclass
class Distribution:
    """可下载的分发包"""

    url: str
    type: str = "zip"
    reference: str = ""


@dataclass
class ResolvedVersion:
    """一个包名解析到的具体版本"""

    name: str
    version: str
    normalized_version: str
    dist: Distribution | None = None
    requires: dict[str, str] = field(default_factory=dict)
    origin: Origin = Origin.REGISTRY


@dataclass
class InstalledPackage:
    """已安装包记录，每个包名至多一条"""

    name: str
    version: str
    store_path: Path
    origin: Origin = Origin.REGISTRY

    def to_dict(self) -> dict[str, str]:
        return {
            "name": self.name,
            "version": self.version,
            "path": str(self.store_path),
            "origin": self.origin.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> InstalledPackage:
        return cls(
            name=data["name"],
            version=data["version"],
            store_path=Path(data["path"]),
            origin=Origin(data.get("origin", Origin.REGISTRY.value)),
        )


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


@dataclass
class AutoloadRules:
    """包清单中的 autoload 段"""

    psr4: dict[str, list[str]] = field(default_factory=dict)
    psr0: dict[str, list[str]] = field(default_factory=dict)
    classmap: list[str] = field(default_factory=list)
    files: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> AutoloadRules:
        data = data or {}
        return cls(
            psr4={p: _as_list(d) for p, d in (data.get("psr-4") or {}).items()},
            psr0={p: _as_list(d) for p, d in (data.get("psr-0") or {}).items()},
            classmap=_as_list(data.get("classmap")),
            files=_as_list(data.get("files")),
        )


@dataclass
class Manifest:
    """单个包的清单"""

    name: str = ""
    require: dict[str, str] = field(default_factory=dict)
    autoload: AutoloadRules = field(default_factory=AutoloadRules)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Manifest:
        return cls(
            name=data.get("name", ""),
            require={k: str(v) for k, v in (data.get("require") or {}).items()},
            autoload=AutoloadRules.from_dict(data.get("autoload")),
        )

    @classmethod
    def load(cls, package_dir: Path, manifest_name: str = DEFAULT_MANIFEST_NAME) -> Manifest:
        """从安装目录读取清单

        Raises:
            MissingManifestError: 清单不存在或不是合法 JSON
        """
        path = package_dir / manifest_name
        if not path.is_file():
            raise MissingManifestError(f"缺少包清单: {path}")
        try:
            return cls.from_dict(load_json(path))
        except (json.JSONDecodeError, ValueError) as e:
            raise MissingManifestError(f"包清单无效: {path}", e) from e
