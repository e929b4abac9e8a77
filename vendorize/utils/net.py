"""网络传输 — URL 安全校验 + JSON 查询 + 文件下载

通过 Transport 协议抽象 HTTP 访问，注册表客户端和安装器只依赖协议；
测试时注入内存实现，无需真实网络。
"""

from __future__ import annotations

import json
import logging
import shutil
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any, Protocol
from urllib.parse import urlparse

from vendorize.core.exceptions import FetchError, ValidationError

logger = logging.getLogger(__name__)

_ALLOWED_SCHEMES = frozenset(("http", "https"))
_CHUNK_SIZE = 64 * 1024


def validate_url_scheme(url: str, *, context: str = "") -> None:
    """校验 URL 仅使用 http/https，防止 file:// 等非预期协议访问

    Raises:
        ValidationError: URL scheme 不在白名单内
    """
    parsed = urlparse(url)
    if parsed.scheme not in _ALLOWED_SCHEMES:
        label = f" ({context})" if context else ""
        raise ValidationError(
            f"不允许的 URL 协议 '{parsed.scheme}'{label}，"
            f"仅支持 http/https: {url}"
        )


# =========================================================================
# 传输协议
# =========================================================================

class Transport(Protocol):
    """HTTP 传输协议 — 抽象 GET JSON 与下载"""

    def get_json(self, url: str) -> dict[str, Any]:
        """GET 并解析 JSON 对象，失败抛 FetchError"""
        ...

    def download(self, url: str, dest: Path) -> None:
        """下载到 dest（已存在的文件会被覆盖），失败抛 FetchError"""
        ...


# =========================================================================
# 默认实现: urllib
# =========================================================================

class HttpTransport:
    """基于 urllib 的默认传输实现"""

    def __init__(
        self,
        *,
        user_agent: str = "vendorize",
        timeout: int = 30,
        download_timeout: int = 300,
        github_token: str = "",
    ) -> None:
        self.user_agent = user_agent
        self.timeout = timeout
        self.download_timeout = download_timeout
        self.github_token = github_token

    def _headers(self, url: str, accept: str = "") -> dict[str, str]:
        headers = {"User-Agent": self.user_agent}
        if accept:
            headers["Accept"] = accept
        host = urlparse(url).hostname or ""
        if self.github_token and (host == "github.com" or host.endswith(".github.com")):
            headers["Authorization"] = f"token {self.github_token}"
        return headers

    @staticmethod
    def _check_rate_limit(url: str, headers: Any) -> None:
        if headers is not None and headers.get("X-RateLimit-Remaining", "").strip() == "0":
            raise FetchError(f"GitHub API 速率限制已耗尽: {url}")

    def get_json(self, url: str) -> dict[str, Any]:
        validate_url_scheme(url, context="registry query")
        req = urllib.request.Request(
            url, headers=self._headers(url, accept="application/json"),
        )
        logger.debug("GET %s", url)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:  # nosec B310
                self._check_rate_limit(url, resp.headers)
                body = resp.read()
        except urllib.error.HTTPError as e:
            self._check_rate_limit(url, e.headers)
            raise FetchError(f"请求失败 (HTTP {e.code}): {url}", e) from e
        except (urllib.error.URLError, OSError) as e:
            raise FetchError(f"请求失败: {url} - {e}", e) from e

        try:
            data = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise FetchError(f"响应不是合法 JSON: {url}", e) from e
        if not isinstance(data, dict):
            raise FetchError(f"响应不是 JSON 对象: {url}")
        return data

    def download(self, url: str, dest: Path) -> None:
        validate_url_scheme(url, context="archive download")
        req = urllib.request.Request(url, headers=self._headers(url))
        logger.info("  下载: %s", url)
        try:
            with urllib.request.urlopen(req, timeout=self.download_timeout) as resp:  # nosec B310
                self._check_rate_limit(url, resp.headers)
                with open(dest, "wb") as f:
                    shutil.copyfileobj(resp, f, _CHUNK_SIZE)
        except urllib.error.HTTPError as e:
            self._check_rate_limit(url, e.headers)
            raise FetchError(f"下载失败 (HTTP {e.code}): {url}", e) from e
        except (urllib.error.URLError, OSError) as e:
            raise FetchError(f"下载失败: {url} - {e}", e) from e
        logger.debug("  已保存: %s (%d 字节)", dest, dest.stat().st_size)
