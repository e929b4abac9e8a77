"""虚拟包（运行时能力）表

虚拟包从不下载，只检查当前运行环境:
- php            PHP 运行时本身
- ext-<name>     PHP 扩展，按 `php -m` 输出判断
- lib-<name>     底层库，随运行时存在即视为可用
- composer-*-api 插件/运行时 API，固定版本

表在每次运行时创建，可通过 entries 覆盖或补充条目。
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Callable

from vendorize.utils.shell import CommandExecutor, LocalExecutor

logger = logging.getLogger(__name__)

COMPOSER_API_VERSION = "2.6.0"
_PROBE_TIMEOUT = 15


@dataclass
class Capability:
    """单个运行时能力: 版本 + 可用性检查"""

    name: str
    version: str
    check: Callable[[], bool]

    def available(self) -> bool:
        return bool(self.check())


class PhpRuntime:
    """PHP 运行时探测（惰性执行，结果缓存）"""

    def __init__(self, php_binary: str = "php", executor: CommandExecutor | None = None) -> None:
        self.php_binary = php_binary
        self.executor = executor or LocalExecutor()
        self._version: str | None = None
        self._modules: set[str] | None = None

    def _run(self, args: list[str]) -> str | None:
        try:
            r = self.executor.execute([self.php_binary, *args], timeout=_PROBE_TIMEOUT)
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("PHP 运行时不可用 (%s): %s", self.php_binary, e)
            return None
        if not r.success:
            logger.warning("PHP 探测失败 (rc=%d): %s", r.returncode, r.stderr[:200])
            return None
        return r.stdout

    @property
    def version(self) -> str:
        if self._version is None:
            out = self._run(["-r", "echo PHP_VERSION;"])
            self._version = out.strip() if out else ""
        return self._version

    @property
    def modules(self) -> set[str]:
        if self._modules is None:
            out = self._run(["-m"])
            self._modules = {
                line.strip().lower()
                for line in (out or "").splitlines()
                if line.strip() and not line.startswith("[")
            }
        return self._modules

    def available(self) -> bool:
        return bool(self.version)


class VirtualCapabilities:
    """虚拟包查找表"""

    def __init__(
        self,
        entries: dict[str, Capability] | None = None,
        runtime: PhpRuntime | None = None,
        runtime_package: str = "php",
    ) -> None:
        self.entries = dict(entries or {})
        self.runtime = runtime or PhpRuntime()
        self.runtime_package = runtime_package

    def lookup(self, name: str) -> Capability | None:
        """返回匹配的能力，不是虚拟包返回 None"""
        key = name.lower()
        if key in self.entries:
            return self.entries[key]
        # 真实包名总是 vendor/name
        if "/" in key:
            return None

        rt = self.runtime
        if key == self.runtime_package or key.startswith(f"{self.runtime_package}-"):
            return Capability(key, rt.version or "0.0.0", rt.available)
        if key.startswith("ext-"):
            module = key[len("ext-"):]
            return Capability(
                key, rt.version or "0.0.0",
                lambda: rt.available() and module in rt.modules,
            )
        if key.startswith("lib-"):
            return Capability(key, rt.version or "0.0.0", rt.available)
        if key.startswith("composer-") and key.endswith("-api"):
            return Capability(key, COMPOSER_API_VERSION, lambda: True)
        return None
