"""远程注册表客户端

职责:
- 查询包的全部已发布版本（Packagist p2 格式，支持 composer/2.0 压缩格式展开）
- 查询分支最新提交，构造提交级别的 zip 下载地址

只依赖 Transport 协议；查询结果在实例内缓存，实例随单次运行创建。
"""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote

from vendorize.core import semver
from vendorize.core.dep.models import Distribution, Origin, ResolvedVersion
from vendorize.core.exceptions import FetchError
from vendorize.utils.net import Transport

logger = logging.getLogger(__name__)

_UNSET = "__unset"


def expand_minified(entries: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """展开 composer/2.0 压缩格式: 每条继承上一条的字段，"__unset" 表示删除"""
    expanded: list[dict[str, Any]] = []
    current: dict[str, Any] | None = None
    for entry in entries:
        if current is None:
            current = dict(entry)
        else:
            current = dict(current)
            for key, value in entry.items():
                if value == _UNSET:
                    current.pop(key, None)
                else:
                    current[key] = value
        expanded.append(current)
    return expanded


class RegistryClient:
    """注册表客户端 - 版本列表 + 分支提交查询"""

    def __init__(
        self,
        transport: Transport,
        *,
        registry_url: str,
        branch_api_url: str,
        branch_dist_url: str,
    ) -> None:
        self.transport = transport
        self.registry_url = registry_url
        self.branch_api_url = branch_api_url
        self.branch_dist_url = branch_dist_url
        self._versions: dict[str, list[ResolvedVersion]] = {}

    def versions(self, name: str) -> list[ResolvedVersion]:
        """获取包的全部已发布版本（未排序）

        Raises:
            FetchError: 网络失败或响应不可用
        """
        if name in self._versions:
            return self._versions[name]

        url = self.registry_url.format(name=name)
        data = self.transport.get_json(url)
        entries = (data.get("packages") or {}).get(name)
        if entries is None:
            raise FetchError(f"注册表响应中没有包 '{name}': {url}")
        if data.get("minified") == "composer/2.0":
            entries = expand_minified(entries)

        result: list[ResolvedVersion] = []
        for entry in entries:
            parsed = self._parse_entry(name, entry)
            if parsed is not None:
                result.append(parsed)

        logger.info("注册表: %s 共 %d 个版本", name, len(result))
        self._versions[name] = result
        return result

    @staticmethod
    def _parse_entry(name: str, entry: dict[str, Any]) -> ResolvedVersion | None:
        version = entry.get("version")
        if not isinstance(version, str) or not version:
            logger.warning("跳过缺少 version 的条目: %s", name)
            return None
        dist = entry.get("dist") or {}
        require = entry.get("require")
        if not isinstance(require, dict):
            # composer/2.0 中空 require 可能被写成 "__unset" 或 []
            require = {}
        return ResolvedVersion(
            name=name,
            version=version,
            normalized_version=semver.normalize(
                entry.get("version_normalized") or version
            ),
            dist=Distribution(
                url=dist["url"],
                type=dist.get("type", "zip"),
                reference=dist.get("reference", ""),
            ) if dist.get("url") else None,
            requires={k: str(v) for k, v in require.items()},
            origin=Origin.REGISTRY,
        )

    def branch_commit(self, name: str, branch: str) -> str:
        """查询分支最新提交 sha

        Raises:
            FetchError: 网络失败或响应中没有 sha
        """
        url = self.branch_api_url.format(name=name, branch=quote(branch, safe=""))
        data = self.transport.get_json(url)
        sha = data.get("sha")
        if not isinstance(sha, str) or not sha:
            raise FetchError(f"分支查询响应中没有 sha: {url}")
        logger.info("分支 %s@%s -> %s", name, branch, sha[:12])
        return sha

    def branch_distribution(self, name: str, sha: str) -> Distribution:
        """构造指向提交快照的 zip 分发包"""
        return Distribution(
            url=self.branch_dist_url.format(name=name, sha=sha),
            type="zip",
            reference=sha,
        )
