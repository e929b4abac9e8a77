"""依赖解析器

按 FIFO 队列逐个处理 (包名, 约束):
  1. 出队
  2. 包名已安装: 只复核约束，不满足抛 VersionConflictError，满足则跳过；
     虚拟包只看可用性，不复核约束
  3. 未安装: 依次尝试 虚拟包表 → 分支引用 → 注册表查询
  4. 记录已安装条目
  5. 调用安装器（虚拟包除外），失败包装为 InstallError
  6. 把该版本的依赖入队（跳过运行时伪依赖和自身）

贪心、不回溯: 某个包名第一次确定的版本在本次运行内不再改变，
之后出现不兼容的约束直接让整次运行失败。每个包名至多安装一次，
循环依赖在第二次访问时走第 2 步，因此必然终止。
"""

from __future__ import annotations

import functools
import logging
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field

from vendorize.core import semver
from vendorize.core.dep.installer import PackageInstaller
from vendorize.core.dep.models import (
    InstalledPackage,
    Manifest,
    Origin,
    Requirement,
    ResolvedVersion,
)
from vendorize.core.dep.registry import RegistryClient
from vendorize.core.dep.virtual import VirtualCapabilities
from vendorize.core.exceptions import (
    BranchResolutionError,
    InstallError,
    MissingCapabilityError,
    NoMatchingVersionError,
    VendorizeError,
    VersionConflictError,
)

logger = logging.getLogger(__name__)


@dataclass
class InstallSession:
    """单次运行的全部可变状态，每次运行新建"""

    queue: deque[Requirement] = field(default_factory=deque)
    installed: dict[str, InstalledPackage] = field(default_factory=dict)
    resolved: dict[str, ResolvedVersion] = field(default_factory=dict)

    def enqueue(self, requirement: Requirement) -> None:
        self.queue.append(requirement)


class DependencyResolver:
    """贪心依赖解析器 - 解析并驱动安装"""

    def __init__(
        self,
        registry: RegistryClient,
        installer: PackageInstaller,
        capabilities: VirtualCapabilities,
        *,
        branch_prefix: str = "dev-",
        runtime_package: str = "php",
    ) -> None:
        self.registry = registry
        self.installer = installer
        self.capabilities = capabilities
        self.branch_prefix = branch_prefix
        self.runtime_package = runtime_package

    def run(
        self,
        requirements: Iterable[Requirement],
        session: InstallSession | None = None,
    ) -> InstallSession:
        """处理队列直到清空，返回会话（含已安装集合）"""
        session = session or InstallSession()
        for req in requirements:
            session.enqueue(req)

        while session.queue:
            self._process(session, session.queue.popleft())

        logger.info("解析完成: 共 %d 个包", len(session.installed))
        return session

    def _process(self, session: InstallSession, req: Requirement) -> None:
        current = session.installed.get(req.name)
        if current is not None:
            if current.origin is Origin.VIRTUAL:
                return
            semver.parse_constraint(req.constraint)
            if not semver.satisfies(current.version, req.constraint):
                raise VersionConflictError(req.name, current.version, req.constraint)
            logger.debug("已安装 %s@%s 满足 '%s'", req.name, current.version, req.constraint)
            return

        resolved = self.resolve(req)
        target = self.installer.target_dir(req.name)
        session.installed[req.name] = InstalledPackage(
            name=req.name,
            version=resolved.version,
            store_path=target,
            origin=resolved.origin,
        )
        session.resolved[req.name] = resolved

        if resolved.origin is Origin.VIRTUAL:
            logger.info("虚拟包 %s@%s 可用", req.name, resolved.version)
            return

        try:
            self.installer.install(req.name, resolved)
        except (VendorizeError, OSError) as e:
            raise InstallError(req.name, e) from e

        requires = resolved.requires
        if resolved.origin is Origin.BRANCH:
            # 分支快照没有注册表元数据，依赖取自安装后的清单
            try:
                requires = Manifest.load(target, self.installer.manifest_name).require
            except VendorizeError as e:
                raise InstallError(req.name, e) from e
            resolved.requires = requires

        for dep_name, dep_constraint in requires.items():
            if dep_name.lower() == self.runtime_package or dep_name == req.name:
                continue
            session.enqueue(Requirement(dep_name, dep_constraint))

    # ------------------------------------------------------------------
    # 单个需求的解析
    # ------------------------------------------------------------------

    def resolve(self, req: Requirement) -> ResolvedVersion:
        """按 虚拟包 → 分支 → 注册表 的顺序解析"""
        return (
            self._resolve_virtual(req)
            or self._resolve_branch(req)
            or self._resolve_registry(req)
        )

    def _resolve_virtual(self, req: Requirement) -> ResolvedVersion | None:
        capability = self.capabilities.lookup(req.name)
        if capability is None:
            return None
        if not capability.available():
            raise MissingCapabilityError(req.name)
        return ResolvedVersion(
            name=req.name,
            version=capability.version,
            normalized_version=semver.normalize(capability.version),
            origin=Origin.VIRTUAL,
        )

    def _resolve_branch(self, req: Requirement) -> ResolvedVersion | None:
        if not semver.is_branch(req.constraint, self.branch_prefix):
            return None
        version = req.constraint.strip().split("@", 1)[0]
        branch = version[len(self.branch_prefix):]
        try:
            sha = self.registry.branch_commit(req.name, branch)
            dist = self.registry.branch_distribution(req.name, sha)
        except (VendorizeError, OSError) as e:
            raise BranchResolutionError(req.name, branch, e) from e
        return ResolvedVersion(
            name=req.name,
            version=version,
            normalized_version=semver.normalize(version),
            dist=dist,
            origin=Origin.BRANCH,
        )

    def _resolve_registry(self, req: Requirement) -> ResolvedVersion:
        # 整条表达式无法解析时在这里失败（InvalidConstraintError）
        semver.parse_constraint(req.constraint)

        candidates = sorted(
            self.registry.versions(req.name),
            key=functools.cmp_to_key(
                lambda a, b: semver.compare(a.normalized_version, b.normalized_version)
            ),
            reverse=True,
        )
        for candidate in candidates:
            if semver.satisfies(candidate.version, req.constraint):
                logger.info("解析 %s '%s' -> %s", req.name, req.constraint, candidate.version)
                return candidate
        raise NoMatchingVersionError(req.name, req.constraint)
