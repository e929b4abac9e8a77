"""公共测试夹具 - 内存注册表 + 假 PHP 运行时"""

from __future__ import annotations

import io
import json
import zipfile
from pathlib import Path
from typing import Any

import pytest

from vendorize.core.config import Config
from vendorize.core.dep.installer import PackageInstaller
from vendorize.core.dep.registry import RegistryClient
from vendorize.core.dep.resolver import DependencyResolver
from vendorize.core.dep.virtual import PhpRuntime, VirtualCapabilities
from vendorize.core.exceptions import FetchError
from vendorize.utils.shell import CommandResult

REGISTRY_URL = "https://repo.test/p2/{name}.json"
BRANCH_API_URL = "https://api.test/repos/{name}/commits/{branch}"
BRANCH_DIST_URL = "https://api.test/repos/{name}/zipball/{sha}"


def build_zip(files: dict[str, str], root: str = "package-root") -> bytes:
    """构造带单个顶层目录的 zip 分发包"""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for rel, content in files.items():
            zf.writestr(f"{root}/{rel}", content)
    return buf.getvalue()


class FakeTransport:
    """内存传输: URL -> JSON / 字节内容"""

    def __init__(self) -> None:
        self.json: dict[str, dict[str, Any]] = {}
        self.files: dict[str, bytes] = {}
        self.requests: list[str] = []
        self.downloads: list[str] = []

    def get_json(self, url: str) -> dict[str, Any]:
        self.requests.append(url)
        if url not in self.json:
            raise FetchError(f"not found: {url}")
        return self.json[url]

    def download(self, url: str, dest: Path) -> None:
        self.downloads.append(url)
        if url not in self.files:
            raise FetchError(f"not found: {url}")
        dest.write_bytes(self.files[url])

    def publish(
        self,
        name: str,
        version: str,
        *,
        require: dict[str, str] | None = None,
        autoload: dict[str, Any] | None = None,
        files: dict[str, str] | None = None,
        archive: bytes | None = None,
        with_manifest: bool = True,
    ) -> str:
        """发布一个版本到注册表，返回分发包地址"""
        dist_url = f"https://dist.test/{name}/{version}.zip"
        contents = dict(files or {})
        if with_manifest:
            contents["composer.json"] = json.dumps({
                "name": name,
                "require": require or {},
                "autoload": autoload or {},
            })
        self.files[dist_url] = archive if archive is not None else build_zip(
            contents, root=f"{name.replace('/', '-')}-{version}",
        )

        url = REGISTRY_URL.format(name=name)
        doc = self.json.setdefault(url, {"packages": {name: []}})
        doc["packages"][name].append({
            "name": name,
            "version": version,
            "version_normalized": f"{version}.0",
            "dist": {"url": dist_url, "type": "zip", "reference": version},
            "require": require or {},
        })
        return dist_url

    def publish_branch(
        self,
        name: str,
        branch: str,
        sha: str,
        *,
        require: dict[str, str] | None = None,
        autoload: dict[str, Any] | None = None,
        files: dict[str, str] | None = None,
    ) -> None:
        self.json[BRANCH_API_URL.format(name=name, branch=branch)] = {"sha": sha}
        contents = dict(files or {})
        contents["composer.json"] = json.dumps({
            "name": name, "require": require or {}, "autoload": autoload or {},
        })
        self.files[BRANCH_DIST_URL.format(name=name, sha=sha)] = build_zip(
            contents, root=f"{name.replace('/', '-')}-{sha[:7]}",
        )


class FakeExecutor:
    """假 PHP 可执行文件"""

    def __init__(self, version: str = "8.2.10", modules: tuple[str, ...] = ("json", "mbstring")) -> None:
        self.version = version
        self.modules = modules
        self.calls: list[list[str]] = []

    def execute(self, cmd: str | list[str], *, timeout: int | None = None) -> CommandResult:
        args = cmd if isinstance(cmd, list) else cmd.split()
        self.calls.append(args)
        if not self.version:
            return CommandResult(127, "", "php: command not found")
        if "-m" in args:
            body = "[PHP Modules]\n" + "\n".join(self.modules) + "\n\n[Zend Modules]\n"
            return CommandResult(0, body, "")
        return CommandResult(0, self.version, "")


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def php() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture
def capabilities(php: FakeExecutor) -> VirtualCapabilities:
    return VirtualCapabilities(runtime=PhpRuntime("php", php))


@pytest.fixture
def config(tmp_path: Path) -> Config:
    return Config(
        store_dir=str(tmp_path / "vendor"),
        project_file=str(tmp_path / "composer.json"),
        registry_url=REGISTRY_URL,
        branch_api_url=BRANCH_API_URL,
        branch_dist_url=BRANCH_DIST_URL,
    )


@pytest.fixture
def make_zip():
    return build_zip


@pytest.fixture
def registry(transport: FakeTransport) -> RegistryClient:
    return RegistryClient(
        transport,
        registry_url=REGISTRY_URL,
        branch_api_url=BRANCH_API_URL,
        branch_dist_url=BRANCH_DIST_URL,
    )


@pytest.fixture
def installer(tmp_path: Path, transport: FakeTransport) -> PackageInstaller:
    return PackageInstaller(tmp_path / "vendor", transport)


@pytest.fixture
def resolver(
    registry: RegistryClient,
    installer: PackageInstaller,
    capabilities: VirtualCapabilities,
) -> DependencyResolver:
    return DependencyResolver(registry, installer, capabilities)
