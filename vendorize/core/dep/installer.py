"""依赖包安装器

单个包的安装流程:
  1. 取分发包地址（没有则 NoDistributionError）
  2. 下载到临时文件（FetchError）
  3. 校验 zip 魔数（InvalidArchiveError）
  4. 解压到临时目录（InvalidArchiveError）
  5. 定位唯一的顶层目录（InvalidArchiveError）
  6. 内容移动到 store/<name>（DirectoryOperationError）
  7. 校验包清单存在（MissingManifestError）

任一步失败: 删除本次创建的 store/<name> 并还原旧目录；
临时文件和临时目录在所有分支上都会清理。

StoreTransaction 把同一次运行中所有包的放置记录下来，
运行中止时整体回滚，运行成功后才删除旧目录备份。
"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
import zipfile
import zlib
from pathlib import Path

from vendorize.core.dep.models import DEFAULT_MANIFEST_NAME, ResolvedVersion
from vendorize.core.exceptions import (
    DirectoryOperationError,
    InvalidArchiveError,
    MissingManifestError,
    NoDistributionError,
)
from vendorize.utils.net import Transport

logger = logging.getLogger(__name__)

ZIP_MAGICS = (b"PK\x03\x04", b"PK\x05\x06", b"PK\x07\x08")
_IGNORED_ROOTS = ("__MACOSX",)


def is_zip_file(path: Path) -> bool:
    """按魔数判断是否为 zip 家族文件"""
    try:
        with open(path, "rb") as f:
            return f.read(4) in ZIP_MAGICS
    except OSError:
        return False


def _remove_tree(path: Path) -> None:
    if path.is_dir() and not path.is_symlink():
        shutil.rmtree(path)
    elif path.exists() or path.is_symlink():
        path.unlink()


class StoreTransaction:
    """运行级存储事务 - 记录放置的包目录与旧目录备份"""

    def __init__(self, store_dir: Path) -> None:
        self.store_dir = store_dir
        self._entries: dict[Path, Path | None] = {}

    def stage(self, target: Path) -> None:
        """放置前调用: 已存在的目录先移到备份区"""
        backup: Path | None = None
        if target.exists():
            self.store_dir.mkdir(parents=True, exist_ok=True)
            backup = Path(tempfile.mkdtemp(prefix=".backup-", dir=str(self.store_dir)))
            try:
                shutil.move(str(target), str(backup / "package"))
            except OSError as e:
                shutil.rmtree(backup, ignore_errors=True)
                raise DirectoryOperationError(f"无法备份已有目录: {target}", e) from e
            logger.debug("  已备份旧目录: %s -> %s", target, backup)
        self._entries[target] = backup

    def revert(self, target: Path) -> None:
        """撤销单个目录的放置: 删除新内容，还原备份"""
        backup = self._entries.pop(target, None)
        try:
            _remove_tree(target)
            if backup is not None:
                shutil.move(str(backup / "package"), str(target))
                shutil.rmtree(backup)
            else:
                self._prune_empty_parents(target)
        except OSError as e:
            # 回滚发生在异常路径上，失败只记录，不掩盖原异常
            logger.error("回滚失败 %s: %s", target, e)

    def _prune_empty_parents(self, target: Path) -> None:
        parent = target.parent
        while parent != self.store_dir and self.store_dir in parent.parents:
            try:
                parent.rmdir()
            except OSError:
                break
            parent = parent.parent

    def rollback(self) -> None:
        """按放置的逆序回滚全部目录"""
        for target in reversed(list(self._entries)):
            logger.warning("回滚: %s", target)
            self.revert(target)

    def commit(self) -> None:
        """确认本次运行，删除所有旧目录备份"""
        for backup in self._entries.values():
            if backup is not None:
                shutil.rmtree(backup, ignore_errors=True)
        self._entries.clear()

    @property
    def placed(self) -> list[Path]:
        return list(self._entries)


class PackageInstaller:
    """依赖包安装器 - 下载、校验、解压、放置，失败回滚"""

    def __init__(
        self,
        store_dir: Path,
        transport: Transport,
        *,
        manifest_name: str = DEFAULT_MANIFEST_NAME,
        transaction: StoreTransaction | None = None,
    ) -> None:
        self.store_dir = store_dir
        self.transport = transport
        self.manifest_name = manifest_name
        self.transaction = transaction or StoreTransaction(store_dir)

    def target_dir(self, name: str) -> Path:
        return self.store_dir / name

    def install(self, name: str, resolved: ResolvedVersion) -> Path:
        """安装单个包，返回安装目录"""
        dist = resolved.dist
        if dist is None or not dist.url:
            raise NoDistributionError(f"{name}@{resolved.version} 没有可下载的分发包")

        target = self.target_dir(name)
        logger.info("安装 %s@%s -> %s", name, resolved.version, target)

        tmp_file: Path | None = None
        tmp_dir: Path | None = None
        staged = False
        try:
            fd, tmp = tempfile.mkstemp(prefix="vendorize_", suffix=".zip")
            os.close(fd)
            tmp_file = Path(tmp)
            self.transport.download(dist.url, tmp_file)

            if not is_zip_file(tmp_file):
                raise InvalidArchiveError(f"下载内容不是 zip 文件: {dist.url}")

            tmp_dir = Path(tempfile.mkdtemp(prefix="vendorize_extract_"))
            self._extract(tmp_file, tmp_dir)
            package_root = self._package_root(tmp_dir)

            self.transaction.stage(target)
            staged = True
            self._move_contents(package_root, target)

            if not (target / self.manifest_name).is_file():
                raise MissingManifestError(
                    f"解压后的包缺少 {self.manifest_name}: {name}"
                )
        except Exception:
            if staged:
                self.transaction.revert(target)
            raise
        finally:
            self._cleanup(tmp_file, tmp_dir)

        logger.info("  已安装: %s@%s", name, resolved.version)
        return target

    @staticmethod
    def _extract(archive: Path, dest: Path) -> None:
        try:
            with zipfile.ZipFile(archive) as zf:
                zf.extractall(dest)
        except (
            zipfile.BadZipFile, zipfile.LargeZipFile, zlib.error, EOFError,
            RuntimeError, ValueError, OSError,
        ) as e:
            raise InvalidArchiveError(f"解压失败: {e}", e) from e

    @staticmethod
    def _package_root(extract_dir: Path) -> Path:
        """注册表的分发包把内容包在一层顶层目录里"""
        for child in sorted(extract_dir.iterdir()):
            if child.is_dir() and child.name not in _IGNORED_ROOTS:
                return child
        raise InvalidArchiveError("分发包中没有顶层目录")

    @staticmethod
    def _move_contents(source: Path, target: Path) -> None:
        try:
            target.mkdir(parents=True, exist_ok=True)
            for child in source.iterdir():
                shutil.move(str(child), str(target / child.name))
        except OSError as e:
            raise DirectoryOperationError(f"移动包内容失败: {source} -> {target}", e) from e

    @staticmethod
    def _cleanup(tmp_file: Path | None, tmp_dir: Path | None) -> None:
        if tmp_file is not None:
            try:
                tmp_file.unlink(missing_ok=True)
            except OSError as e:
                logger.warning("临时文件清理失败 %s: %s", tmp_file, e)
        if tmp_dir is not None:
            shutil.rmtree(tmp_dir, ignore_errors=True)
