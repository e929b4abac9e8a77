"""类映射生成器

MappingGenerator 在一次运行中累积各包清单的 autoload 声明，
安装结束后调用一次 generate() 产出 MappingTable:

- 前缀规则 (psr-4 / psr-0): 同一前缀的目录按注册顺序追加，旧映射中的目录排在前面
- 类索引: 扫描 classmap 根目录得到 (全限定名, 文件)，先注册者优先
- 常驻加载文件: 按首次出现顺序去重，生成时文件必须存在

generate(prior) 会先并入上一次持久化的映射，重复运行结果不变。
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from vendorize.core.autoload.scanner import scan_file
from vendorize.core.dep.models import Manifest

logger = logging.getLogger(__name__)

PSR4 = "psr-4"
PSR0 = "psr-0"
SOURCE_EXTENSION = ".php"
CLASSMAP_EXTENSIONS = (".php", ".inc")


def _norm(path: str | Path) -> str:
    return os.path.normpath(str(path))


@dataclass
class PrefixRule:
    """一条前缀规则: 前缀 + 有序目录列表"""

    prefix: str
    kind: str
    dirs: list[str] = field(default_factory=list)

    def matches(self, name: str) -> bool:
        return name.startswith(self.prefix)

    def relative_path(self, name: str) -> str:
        """psr-4 去掉前缀后替换命名空间分隔符；psr-0 用全名并把 `_` 也当分隔符"""
        if self.kind == PSR4:
            rel = name[len(self.prefix):].replace("\\", "/")
        else:
            rel = name.replace("\\", "/").replace("_", "/")
        return rel + SOURCE_EXTENSION

    def find_file(self, name: str) -> str | None:
        if not self.matches(name):
            return None
        rel = self.relative_path(name)
        for d in self.dirs:
            candidate = os.path.join(d, rel)
            if os.path.isfile(candidate):
                return candidate
        return None


@dataclass
class MappingTable:
    """生成结果: 运行时据此把类名定位到文件"""

    prefix_rules: list[PrefixRule] = field(default_factory=list)
    class_index: dict[str, str] = field(default_factory=dict)
    always_load: list[str] = field(default_factory=list)

    def rule(self, prefix: str, kind: str = PSR4) -> PrefixRule | None:
        for r in self.prefix_rules:
            if r.prefix == prefix and r.kind == kind:
                return r
        return None

    def find_file(self, name: str) -> str | None:
        """类索引优先，其次按规则顺序查找前缀目录"""
        name = name.lstrip("\\")
        if name in self.class_index:
            return self.class_index[name]
        for r in self.prefix_rules:
            found = r.find_file(name)
            if found is not None:
                return found
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "prefix_rules": [
                {"prefix": r.prefix, "kind": r.kind, "dirs": list(r.dirs)}
                for r in self.prefix_rules
            ],
            "class_index": dict(self.class_index),
            "always_load": list(self.always_load),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MappingTable:
        return cls(
            prefix_rules=[
                PrefixRule(
                    prefix=r.get("prefix", ""),
                    kind=r.get("kind", PSR4),
                    dirs=[str(d) for d in r.get("dirs", [])],
                )
                for r in data.get("prefix_rules", [])
            ],
            class_index={str(k): str(v) for k, v in (data.get("class_index") or {}).items()},
            always_load=[str(f) for f in data.get("always_load", [])],
        )


def _rule_order(rule: PrefixRule) -> tuple[int, int]:
    # psr-4 在前；同类规则中长前缀优先，等长保持注册顺序
    return (0 if rule.kind == PSR4 else 1, -len(rule.prefix))


class MappingGenerator:
    """单次运行的映射累加器"""

    def __init__(self) -> None:
        self._prefixes: dict[tuple[str, str], list[str]] = {}
        self._classmap: list[str] = []
        self._files: list[str] = []

    def add_package(self, manifest: Manifest, base_path: Path) -> None:
        """累积一个包的 autoload 声明，路径相对于 base_path"""
        rules = manifest.autoload
        for kind, table in ((PSR4, rules.psr4), (PSR0, rules.psr0)):
            for prefix, dirs in table.items():
                bucket = self._prefixes.setdefault((kind, prefix), [])
                bucket.extend(_norm(base_path / d) for d in dirs)
        self._classmap.extend(_norm(base_path / d) for d in rules.classmap)
        self._files.extend(_norm(base_path / f) for f in rules.files)
        logger.debug(
            "登记 %s: %d 条前缀, %d 个 classmap 根, %d 个常驻文件",
            manifest.name or base_path, len(rules.psr4) + len(rules.psr0),
            len(rules.classmap), len(rules.files),
        )

    def generate(self, prior: MappingTable | None = None) -> MappingTable:
        """产出映射表；prior 为上一次持久化的结果"""
        table = MappingTable(
            prefix_rules=self._merge_prefixes(prior),
            class_index=self._build_class_index(prior),
            always_load=self._merge_files(prior),
        )
        logger.info(
            "映射生成完成: %d 条前缀规则, %d 个类, %d 个常驻文件",
            len(table.prefix_rules), len(table.class_index), len(table.always_load),
        )
        return table

    def _merge_prefixes(self, prior: MappingTable | None) -> list[PrefixRule]:
        merged: dict[tuple[str, str], list[str]] = {}
        sources: list[tuple[tuple[str, str], list[str]]] = []
        if prior is not None:
            sources.extend(((r.kind, r.prefix), r.dirs) for r in prior.prefix_rules)
        sources.extend(self._prefixes.items())
        for key, dirs in sources:
            bucket = merged.setdefault(key, [])
            for d in dirs:
                if d not in bucket:
                    bucket.append(d)
        rules = [PrefixRule(prefix=p, kind=k, dirs=dirs) for (k, p), dirs in merged.items()]
        return sorted(rules, key=_rule_order)

    def _build_class_index(self, prior: MappingTable | None) -> dict[str, str]:
        index: dict[str, str] = {}
        if prior is not None:
            for name, path in prior.class_index.items():
                if os.path.isfile(path):
                    index[name] = path
                else:
                    logger.debug("旧映射中的文件已不存在，丢弃: %s -> %s", name, path)

        for root in self._classmap:
            for source in _source_files(Path(root)):
                for name in scan_file(source):
                    if name in index:
                        if index[name] != str(source):
                            logger.warning(
                                "类 %s 已登记于 %s，忽略 %s", name, index[name], source,
                            )
                        continue
                    index[name] = str(source)
        return index

    def _merge_files(self, prior: MappingTable | None) -> list[str]:
        candidates = list(prior.always_load) if prior is not None else []
        candidates.extend(self._files)
        result: list[str] = []
        for f in candidates:
            if f in result:
                continue
            if not os.path.isfile(f):
                logger.warning("常驻加载文件不存在，跳过: %s", f)
                continue
            result.append(f)
        return result


def _source_files(root: Path) -> list[Path]:
    """classmap 条目可以是目录或单个文件"""
    if root.is_file():
        return [root]
    if not root.is_dir():
        logger.warning("classmap 路径不存在: %s", root)
        return []
    return sorted(
        p for p in root.rglob("*")
        if p.is_file() and p.suffix.lower() in CLASSMAP_EXTENSIONS
    )
