"""包管理器门面

把一次完整运行串起来: 解析 → 安装 → 生成映射 → 持久化 → 提交。

用法:
    from vendorize.core.manager import PackageManager

    pm = PackageManager()
    pm.install([Requirement("acme/foo", "^1.0")])

    # 只重建映射（不访问网络）
    pm.dump_autoload()

    # 查询类所在文件
    path = pm.find_class("Acme\\\\Foo\\\\Client")

任一步失败时本次运行放置的所有包目录整体回滚，异常原样向上抛出。
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable
from pathlib import Path

from vendorize.core.autoload import (
    MappingGenerator,
    MappingTable,
    load_mapping,
    save_mapping,
    write_loader,
)
from vendorize.core.config import Config, get_config
from vendorize.core.dep import (
    DependencyResolver,
    InstalledPackage,
    InstallSession,
    Manifest,
    Origin,
    PackageInstaller,
    RegistryClient,
    Requirement,
    StoreTransaction,
    VirtualCapabilities,
)
from vendorize.core.dep.virtual import PhpRuntime
from vendorize.core.exceptions import ConfigError, ValidationError
from vendorize.utils.file_io import atomic_write, load_json, save_json
from vendorize.utils.net import HttpTransport, Transport
from vendorize.utils.shell import CommandExecutor

logger = logging.getLogger(__name__)


class PackageManager:
    """依赖包管理器 - 一次运行的编排者"""

    def __init__(
        self,
        config: Config | None = None,
        *,
        transport: Transport | None = None,
        capabilities: VirtualCapabilities | None = None,
        executor: CommandExecutor | None = None,
    ) -> None:
        self.config = config or get_config()
        cfg = self.config
        self.store_dir = Path(cfg.store_dir).absolute()
        self.transport = transport or HttpTransport(
            user_agent=cfg.user_agent,
            timeout=cfg.request_timeout,
            download_timeout=cfg.download_timeout,
            github_token=cfg.github_token,
        )
        self.capabilities = capabilities or VirtualCapabilities(
            runtime=PhpRuntime(cfg.php_binary, executor),
            runtime_package=cfg.runtime_package,
        )

    @property
    def mapping_path(self) -> Path:
        return self.store_dir / self.config.mapping_file

    @property
    def loader_path(self) -> Path:
        return self.store_dir / self.config.loader_file

    @property
    def installed_path(self) -> Path:
        return self.store_dir / self.config.installed_file

    # ------------------------------------------------------------------
    # 项目文件
    # ------------------------------------------------------------------

    def project_requirements(self) -> list[Requirement]:
        """读取项目文件的 require 段"""
        return self._requirements(self._load_project())

    def _requirements(self, data: dict) -> list[Requirement]:
        require = data.get("require") or {}
        if not isinstance(require, dict):
            raise ConfigError(f"{self.config.project_file} 的 require 段必须是对象")
        return [Requirement(name, str(c)) for name, c in require.items()]

    def _load_project(self) -> dict:
        path = Path(self.config.project_file)
        try:
            return load_json(path)
        except (json.JSONDecodeError, ValueError) as e:
            raise ConfigError(f"项目文件无法解析: {path} ({e})", e) from e

    def require(self, name: str, constraint: str = "*") -> InstallSession:
        """把一条需求写入项目文件，然后按项目文件安装"""
        if "/" not in name:
            raise ValidationError(f"包名必须是 vendor/name 形式: {name}")
        data = self._load_project()
        data.setdefault("require", {})[name] = constraint
        session = self.install(self._requirements(data))
        save_json(self.config.project_file, data)
        logger.info("已写入 %s: %s %s", self.config.project_file, name, constraint)
        return session

    # ------------------------------------------------------------------
    # 安装
    # ------------------------------------------------------------------

    def install(self, requirements: Iterable[Requirement] | None = None) -> InstallSession:
        """执行一次完整运行，返回会话

        requirements 为空时使用项目文件的 require 段。
        """
        reqs = list(requirements) if requirements is not None else self.project_requirements()
        if not reqs:
            logger.warning("没有任何需求，跳过安装")
            return InstallSession()

        cfg = self.config
        transaction = StoreTransaction(self.store_dir)
        installer = PackageInstaller(
            self.store_dir, self.transport,
            manifest_name=cfg.manifest_name, transaction=transaction,
        )
        registry = RegistryClient(
            self.transport,
            registry_url=cfg.registry_url,
            branch_api_url=cfg.branch_api_url,
            branch_dist_url=cfg.branch_dist_url,
        )
        resolver = DependencyResolver(
            registry, installer, self.capabilities,
            branch_prefix=cfg.branch_prefix,
            runtime_package=cfg.runtime_package,
        )

        logger.info("开始安装: %s", ", ".join(f"{r.name}:{r.constraint}" for r in reqs))
        records = self._snapshot_records()
        try:
            session = resolver.run(reqs)
            table = self._generate(session.installed.values(), prior=load_mapping(self.mapping_path))
            self._persist(table)
            # installed.json 最后写入
            self._save_installed(session.installed.values())
        except Exception:
            logger.error("安装中止，回滚本次放置的 %d 个包", len(transaction.placed))
            transaction.rollback()
            self._restore_records(records)
            raise
        transaction.commit()
        logger.info("安装完成: %d 个包", len(session.installed))
        return session

    def _snapshot_records(self) -> dict[Path, str | None]:
        """记录 installed.json / mapping.json / 加载器的原始内容"""
        snapshot: dict[Path, str | None] = {}
        for path in (self.installed_path, self.mapping_path, self.loader_path):
            snapshot[path] = path.read_text(encoding="utf-8") if path.is_file() else None
        return snapshot

    def _restore_records(self, snapshot: dict[Path, str | None]) -> None:
        for path, content in snapshot.items():
            try:
                if content is None:
                    path.unlink(missing_ok=True)
                else:
                    atomic_write(path, content)
            except OSError as e:
                # 发生在异常路径上，只记录，不掩盖原异常
                logger.error("还原记录文件失败 %s: %s", path, e)

    # ------------------------------------------------------------------
    # 映射
    # ------------------------------------------------------------------

    def _generate(
        self,
        packages: Iterable[InstalledPackage],
        prior: MappingTable | None = None,
    ) -> MappingTable:
        generator = MappingGenerator()
        for pkg in packages:
            if pkg.origin is Origin.VIRTUAL:
                continue
            manifest = Manifest.load(pkg.store_path, self.config.manifest_name)
            generator.add_package(manifest, pkg.store_path)
        return generator.generate(prior)

    def _persist(self, table: MappingTable) -> None:
        save_mapping(table, self.mapping_path)
        write_loader(self.loader_path, self.config.mapping_file)

    def dump_autoload(self) -> MappingTable:
        """按 installed.json 重新生成映射（不合并旧映射，不访问网络）"""
        table = self._generate(self.installed())
        self._persist(table)
        return table

    def find_class(self, name: str) -> str | None:
        """按已持久化的映射查找类所在文件"""
        table = load_mapping(self.mapping_path)
        if table is None:
            return None
        return table.find_file(name)

    # ------------------------------------------------------------------
    # 已安装记录
    # ------------------------------------------------------------------

    def installed(self) -> list[InstalledPackage]:
        """读取 installed.json"""
        try:
            data = load_json(self.installed_path)
        except (json.JSONDecodeError, ValueError) as e:
            raise ValidationError(f"已安装记录无法解析: {self.installed_path} ({e})") from e
        return [InstalledPackage.from_dict(p) for p in data.get("packages", [])]

    def _save_installed(self, packages: Iterable[InstalledPackage]) -> None:
        # 与之前运行的记录合并，同名以本次为准
        merged = {p.name: p for p in self.installed()}
        for p in packages:
            merged[p.name] = p
        save_json(
            self.installed_path,
            {"packages": [p.to_dict() for p in sorted(merged.values(), key=lambda p: p.name)]},
        )
