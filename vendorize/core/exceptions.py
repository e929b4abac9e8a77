"""统一异常体系

所有业务异常继承 VendorizeError，每类异常带一个稳定的 code，
CLI 层据此输出 "code: message" 形式的单行错误并附带原因链。

解析期异常 (VersionConflict / MissingCapability / NoMatchingVersion /
BranchResolution / InvalidConstraint) 与安装期异常 (InstallError 包装的
各阶段异常) 都会中止整次运行。
"""

from __future__ import annotations


class VendorizeError(Exception):
    """基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class ConfigError(VendorizeError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ValidationError(VendorizeError):
    """输入数据校验失败"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


# =========================================================================
# 解析期异常
# =========================================================================


class InvalidConstraintError(VendorizeError):
    """版本约束表达式整体无法解析"""

    code = "INVALID_CONSTRAINT"

    def __init__(self, constraint: str) -> None:
        super().__init__(f"无法解析的版本约束: '{constraint}'")
        self.constraint = constraint


class VersionConflictError(VendorizeError):
    """已安装版本不满足后续出现的约束"""

    code = "VERSION_CONFLICT"

    def __init__(self, name: str, installed_version: str, constraint: str) -> None:
        super().__init__(
            f"版本冲突: {name} 已安装 {installed_version}，不满足约束 '{constraint}'"
        )
        self.name = name
        self.installed_version = installed_version
        self.constraint = constraint


class MissingCapabilityError(VendorizeError):
    """虚拟包（运行时能力）在当前环境不可用"""

    code = "MISSING_CAPABILITY"

    def __init__(self, name: str) -> None:
        super().__init__(f"运行时能力不可用: {name}")
        self.name = name


class BranchResolutionError(VendorizeError):
    """分支引用无法解析为提交"""

    code = "BRANCH_RESOLUTION_FAILED"

    def __init__(self, name: str, branch: str, cause: BaseException | None = None) -> None:
        super().__init__(f"分支解析失败: {name}@{branch}", cause)
        self.name = name
        self.branch = branch


class NoMatchingVersionError(VendorizeError):
    """注册表中没有满足约束的版本"""

    code = "NO_MATCHING_VERSION"

    def __init__(self, name: str, constraint: str) -> None:
        super().__init__(f"没有满足约束的版本: {name} ({constraint})")
        self.name = name
        self.constraint = constraint


# =========================================================================
# 安装期异常
# =========================================================================


class FetchError(VendorizeError):
    """网络请求或下载失败"""

    code = "FETCH_FAILED"


class NoDistributionError(VendorizeError):
    """解析结果不含可下载的分发包"""

    code = "NO_DISTRIBUTION"


class InvalidArchiveError(VendorizeError):
    """分发包不是合法的 zip 或结构不符"""

    code = "INVALID_ARCHIVE"


class MissingManifestError(VendorizeError):
    """安装目录中缺少包清单文件"""

    code = "MISSING_MANIFEST"


class DirectoryOperationError(VendorizeError):
    """创建/移动/删除目录失败"""

    code = "DIRECTORY_OPERATION_FAILED"


class InstallError(VendorizeError):
    """单个包安装失败（包装各阶段原因）"""

    code = "INSTALL_FAILED"

    def __init__(self, name: str, cause: BaseException) -> None:
        super().__init__(f"安装失败: {name}", cause)
        self.name = name


def describe(exc: BaseException) -> str:
    """展开异常原因链为单行文本，供 CLI 输出"""
    parts: list[str] = []
    current: BaseException | None = exc
    seen: set[int] = set()
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        code = getattr(current, "code", type(current).__name__)
        parts.append(f"{code}: {current}")
        current = getattr(current, "cause", None) or current.__cause__
    return " <- ".join(parts)
