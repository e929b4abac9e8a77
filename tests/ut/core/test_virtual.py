"""虚拟包（运行时能力）表测试"""

from __future__ import annotations

import subprocess

from vendorize.core.dep.virtual import (
    COMPOSER_API_VERSION,
    Capability,
    PhpRuntime,
    VirtualCapabilities,
)
from vendorize.utils.shell import CommandResult


class _RaisingExecutor:
    def execute(self, cmd, *, timeout=None) -> CommandResult:
        raise FileNotFoundError("php")


class _TimeoutExecutor:
    def execute(self, cmd, *, timeout=None) -> CommandResult:
        raise subprocess.TimeoutExpired(cmd, timeout)


class TestPhpRuntime:
    def test_version_and_modules(self, php) -> None:
        rt = PhpRuntime("php", php)
        assert rt.version == "8.2.10"
        assert rt.modules == {"json", "mbstring"}
        assert rt.available()

    def test_runtime_queried_once(self, php) -> None:
        rt = PhpRuntime("php", php)
        _ = rt.version, rt.version, rt.modules, rt.modules
        assert len(php.calls) == 2

    def test_missing_binary(self) -> None:
        rt = PhpRuntime("php", _RaisingExecutor())
        assert rt.version == ""
        assert not rt.available()
        assert rt.modules == set()

    def test_timeout_is_unavailable(self) -> None:
        assert not PhpRuntime("php", _TimeoutExecutor()).available()


class TestLookup:
    def test_php(self, capabilities: VirtualCapabilities) -> None:
        cap = capabilities.lookup("php")
        assert cap is not None
        assert cap.version == "8.2.10"
        assert cap.available()

    def test_php_64bit_variant(self, capabilities: VirtualCapabilities) -> None:
        assert capabilities.lookup("php-64bit") is not None

    def test_extension_present(self, capabilities: VirtualCapabilities) -> None:
        assert capabilities.lookup("ext-json").available()
        assert capabilities.lookup("EXT-MBSTRING").available()

    def test_extension_missing(self, capabilities: VirtualCapabilities) -> None:
        cap = capabilities.lookup("ext-redis")
        assert cap is not None
        assert not cap.available()

    def test_lib_follows_runtime(self, capabilities: VirtualCapabilities) -> None:
        assert capabilities.lookup("lib-curl").available()

    def test_composer_api(self, capabilities: VirtualCapabilities) -> None:
        cap = capabilities.lookup("composer-plugin-api")
        assert cap.version == COMPOSER_API_VERSION
        assert cap.available()

    def test_real_packages_not_virtual(self, capabilities: VirtualCapabilities) -> None:
        assert capabilities.lookup("acme/foo") is None
        assert capabilities.lookup("php-http/client-common") is None
        assert capabilities.lookup("symfony") is None

    def test_explicit_entries_override(self, capabilities: VirtualCapabilities) -> None:
        table = VirtualCapabilities(
            entries={"ext-custom": Capability("ext-custom", "1.0", lambda: True)},
            runtime=capabilities.runtime,
        )
        assert table.lookup("ext-custom").version == "1.0"

    def test_no_runtime(self) -> None:
        table = VirtualCapabilities(runtime=PhpRuntime("php", _RaisingExecutor()))
        assert not table.lookup("php").available()
        assert not table.lookup("ext-json").available()
