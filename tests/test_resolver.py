"""依赖解析器测试 - FIFO 贪心解析 + 虚拟包 / 分支引用"""

from __future__ import annotations

from pathlib import Path

import pytest

from vendorize.core.dep.models import Origin, Requirement
from vendorize.core.dep.resolver import DependencyResolver, InstallSession
from vendorize.core.exceptions import (
    BranchResolutionError,
    FetchError,
    InstallError,
    InvalidArchiveError,
    InvalidConstraintError,
    MissingCapabilityError,
    NoMatchingVersionError,
    VersionConflictError,
)


class TestRegistryResolution:
    def test_highest_satisfying_not_highest_overall(self, transport, resolver) -> None:
        for v in ("1.0.0", "1.1.0", "2.0.0"):
            transport.publish("acme/a", v)
        session = resolver.run([Requirement("acme/a", "^1.0")])
        assert session.installed["acme/a"].version == "1.1.0"

    def test_conflict_after_install(self, transport, resolver) -> None:
        for v in ("1.0.0", "2.0.0"):
            transport.publish("acme/a", v)
        with pytest.raises(VersionConflictError) as exc:
            resolver.run([Requirement("acme/a", "^1.0"), Requirement("acme/a", "^2.0")])
        assert exc.value.installed_version == "1.0.0"
        assert exc.value.constraint == "^2.0"

    def test_compatible_repeat_is_noop(self, transport, resolver) -> None:
        transport.publish("acme/a", "1.2.0")
        session = resolver.run([Requirement("acme/a", "^1.0"), Requirement("acme/a", "~1.2")])
        assert transport.downloads == ["https://dist.test/acme/a/1.2.0.zip"]
        assert list(session.installed) == ["acme/a"]

    def test_cycle_terminates(self, transport, resolver) -> None:
        """A 依赖 B，B 依赖 A: 各安装一次后终止"""
        transport.publish("acme/a", "1.0.0", require={"acme/b": "^1.0"})
        transport.publish("acme/b", "1.0.0", require={"acme/a": "^1.0"})
        session = resolver.run([Requirement("acme/a", "^1.0")])
        assert set(session.installed) == {"acme/a", "acme/b"}
        assert len(transport.downloads) == 2

    def test_dependencies_enqueued_fifo(self, transport, resolver) -> None:
        transport.publish("acme/root", "1.0.0", require={"acme/x": "*", "acme/y": "*"})
        transport.publish("acme/x", "1.0.0", require={"acme/z": "*"})
        transport.publish("acme/y", "1.0.0")
        transport.publish("acme/z", "1.0.0")
        session = resolver.run([Requirement("acme/root")])
        assert list(session.installed) == ["acme/root", "acme/x", "acme/y", "acme/z"]

    def test_runtime_and_self_dependencies_skipped(self, transport, resolver, php) -> None:
        transport.publish("acme/a", "1.0.0", require={"php": ">=99.0", "acme/a": "^1.0"})
        session = resolver.run([Requirement("acme/a")])
        assert list(session.installed) == ["acme/a"]
        assert php.calls == []

    def test_no_matching_version(self, transport, resolver) -> None:
        transport.publish("acme/a", "1.0.0")
        with pytest.raises(NoMatchingVersionError, match="没有满足约束的版本"):
            resolver.run([Requirement("acme/a", "^3.0")])

    def test_invalid_constraint_fails_step(self, transport, resolver) -> None:
        transport.publish("acme/a", "1.0.0")
        with pytest.raises(InvalidConstraintError):
            resolver.run([Requirement("acme/a", "garbage!!")])

    def test_registry_failure_is_fatal(self, resolver) -> None:
        with pytest.raises(FetchError):
            resolver.run([Requirement("acme/unknown", "^1.0")])

    def test_install_failure_wrapped(self, transport, resolver) -> None:
        transport.publish("acme/a", "1.0.0", archive=b"not a zip")
        with pytest.raises(InstallError) as exc:
            resolver.run([Requirement("acme/a", "^1.0")])
        assert exc.value.name == "acme/a"
        assert isinstance(exc.value.cause, InvalidArchiveError)

    def test_corrupt_deflate_wrapped(self, transport, resolver) -> None:
        import io
        import zipfile

        member = "acme-a-1.0.0/composer.json"
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            zf.writestr(member, '{"name": "acme/a"}' * 50)
        data = bytearray(buf.getvalue())
        data[30 + len(member):30 + len(member) + 8] = b"\xff" * 8

        transport.publish("acme/a", "1.0.0", archive=bytes(data))
        with pytest.raises(InstallError) as exc:
            resolver.run([Requirement("acme/a", "^1.0")])
        assert isinstance(exc.value.cause, InvalidArchiveError)

    def test_invalid_constraint_on_recheck(self, transport, resolver) -> None:
        """已安装的包名遇到整体无法解析的约束，报约束错误而不是冲突"""
        transport.publish("acme/a", "1.0.0")
        with pytest.raises(InvalidConstraintError):
            resolver.run([Requirement("acme/a", "^1.0"), Requirement("acme/a", "not-a-version")])

    def test_remaining_queue_discarded_on_error(self, transport, resolver) -> None:
        transport.publish("acme/a", "1.0.0")
        session = InstallSession()
        with pytest.raises(NoMatchingVersionError):
            resolver.run(
                [Requirement("acme/a", "^9.0"), Requirement("acme/b", "*")], session,
            )
        assert "acme/b" not in session.installed
        assert transport.downloads == []


class TestVirtualPackages:
    def test_virtual_never_fetched(self, transport, resolver) -> None:
        transport.publish("acme/a", "1.0.0", require={"ext-json": "*"})
        session = resolver.run([Requirement("acme/a")])
        virtual = session.installed["ext-json"]
        assert virtual.origin is Origin.VIRTUAL
        assert virtual.version == "8.2.10"
        assert all("ext-json" not in u for u in transport.requests)

    def test_same_virtual_constraint_from_two_consumers(self, transport, resolver) -> None:
        """虚拟包只看可用性: 第二次访问同样不复核约束"""
        transport.publish("acme/a", "1.0.0", require={"ext-json": "^1.0"})
        transport.publish("acme/b", "1.0.0", require={"ext-json": "^1.0"})
        session = resolver.run([Requirement("acme/a"), Requirement("acme/b")])
        assert session.installed["ext-json"].version == "8.2.10"
        assert session.installed["acme/b"].version == "1.0.0"

    def test_missing_capability(self, transport, resolver) -> None:
        transport.publish("acme/a", "1.0.0", require={"ext-redis": "*"})
        with pytest.raises(MissingCapabilityError, match="ext-redis"):
            resolver.run([Requirement("acme/a")])


class TestBranchResolution:
    def test_branch_installed_with_manifest_requires(self, tmp_path: Path, transport, resolver) -> None:
        transport.publish_branch(
            "acme/edge", "main", "deadbeefcafe", require={"acme/lib": "^1.0"},
        )
        transport.publish("acme/lib", "1.4.0")
        session = resolver.run([Requirement("acme/edge", "dev-main")])

        edge = session.installed["acme/edge"]
        assert edge.version == "dev-main"
        assert edge.origin is Origin.BRANCH
        assert session.resolved["acme/edge"].dist.reference == "deadbeefcafe"
        assert (tmp_path / "vendor" / "acme/edge" / "composer.json").is_file()
        assert session.installed["acme/lib"].version == "1.4.0"

    def test_branch_failure_raises(self, transport, resolver) -> None:
        with pytest.raises(BranchResolutionError) as exc:
            resolver.run([Requirement("acme/edge", "dev-nope")])
        assert exc.value.branch == "nope"
        assert isinstance(exc.value.cause, FetchError)

    def test_branch_constraint_satisfied_on_recheck(self, transport, resolver) -> None:
        transport.publish_branch("acme/edge", "main", "abc")
        session = resolver.run([
            Requirement("acme/edge", "dev-main"),
            Requirement("acme/edge", "dev-main"),
        ])
        assert len(transport.downloads) == 1
        assert session.installed["acme/edge"].version == "dev-main"


class TestSessionIsolation:
    def test_each_run_uses_fresh_session(self, transport, resolver: DependencyResolver) -> None:
        transport.publish("acme/a", "1.0.0")
        transport.publish("acme/a", "2.0.0")
        first = resolver.run([Requirement("acme/a", "^1.0")])
        second = resolver.run([Requirement("acme/a", "^2.0")])
        assert first.installed["acme/a"].version == "1.0.0"
        assert second.installed["acme/a"].version == "2.0.0"
