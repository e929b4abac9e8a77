"""PHP 类型声明扫描器

不是完整的解析器: 只做最小化的词法切分，找出文件中声明的
class / interface / trait / enum 及其所在命名空间。

处理范围:
- 只扫描 <?php ... ?> 片段，片段外的 HTML 文本忽略
- 跳过注释、单/双引号字符串、heredoc / nowdoc
- `namespace A\\B;` 与 `namespace A\\B { ... }` 两种写法，同一文件可多次声明
- 忽略 `Foo::class` 常量与匿名类 `new class`
"""

from __future__ import annotations

import logging
import re
from pathlib import Path

logger = logging.getLogger(__name__)

_TYPE_KEYWORDS = frozenset(("class", "interface", "trait", "enum"))

_TOKEN_RE = re.compile(
    r"""
    (?P<comment>//[^\n]*?(?=\?>|\n|$)|\#(?!\[)[^\n]*?(?=\?>|\n|$)|/\*.*?\*/)
  | (?P<heredoc><<<[ \t]*(?P<q>["']?)(?P<label>[A-Za-z_]\w*)(?P=q)\r?\n.*?^[ \t]*(?P=label)\b)
  | (?P<string>'(?:[^'\\]|\\.)*'|"(?:[^"\\]|\\.)*")
  | (?P<close>\?>)
  | (?P<name>\\?[A-Za-z_\x80-\uffff][\w\x80-\uffff]*(?:\\[A-Za-z_\x80-\uffff][\w\x80-\uffff]*)*)
  | (?P<dcolon>::)
  | (?P<punct>[{};])
  | (?P<other>\S)
    """,
    re.VERBOSE | re.DOTALL | re.MULTILINE,
)

_OPEN_TAG_RE = re.compile(r"<\?(?:php\b|=)", re.IGNORECASE)


def _php_segments(source: str) -> list[str]:
    """切出 <?php ... ?> 之间的代码片段"""
    segments: list[str] = []
    pos = 0
    while True:
        m = _OPEN_TAG_RE.search(source, pos)
        if m is None:
            return segments
        start = m.end()
        end = _find_close_tag(source, start)
        segments.append(source[start:end])
        if end >= len(source):
            return segments
        pos = end + 2


def _find_close_tag(source: str, start: int) -> int:
    for m in _TOKEN_RE.finditer(source, start):
        if m.lastgroup == "close":
            return m.start()
    return len(source)


def _tokens(code: str) -> list[tuple[str, str]]:
    return [
        (m.lastgroup or "", m.group())
        for m in _TOKEN_RE.finditer(code)
        if m.lastgroup not in ("comment", "heredoc", "string")
    ]


def find_classes(source: str) -> list[str]:
    """返回源码中声明的全限定类型名（按出现顺序，去重）"""
    found: list[str] = []
    for segment in _php_segments(source):
        toks = _tokens(segment)
        namespace = ""
        # 花括号命名空间: 记录进入时的深度，离开时恢复为全局
        depth = 0
        ns_depth: int | None = None
        i = 0
        while i < len(toks):
            kind, text = toks[i]
            lower = text.lower()
            if kind == "punct":
                if text == "{":
                    depth += 1
                elif text == "}":
                    depth -= 1
                    if ns_depth is not None and depth == ns_depth:
                        namespace, ns_depth = "", None
            elif kind == "name" and lower == "namespace" and _is_statement_start(toks, i):
                name, i = _read_namespace(toks, i + 1)
                namespace = name
                if i < len(toks) and toks[i][1] == "{":
                    ns_depth = depth
                    depth += 1
                i += 1
                continue
            elif kind == "name" and lower in _TYPE_KEYWORDS and _is_declaration(toks, i):
                qualified = f"{namespace}\\{toks[i + 1][1]}" if namespace else toks[i + 1][1]
                if qualified not in found:
                    found.append(qualified)
                i += 2
                continue
            i += 1
    return found


def _is_statement_start(toks: list[tuple[str, str]], i: int) -> bool:
    """namespace 关键字出现在语句开头（排除 namespace\\foo() 相对名）"""
    return i == 0 or toks[i - 1][1] in (";", "{", "}")


def _read_namespace(toks: list[tuple[str, str]], i: int) -> tuple[str, int]:
    """读取命名空间名，返回 (名称, 停在 ';' 或 '{' 的下标)"""
    parts: list[str] = []
    while i < len(toks) and toks[i][1] not in (";", "{"):
        parts.append(toks[i][1])
        i += 1
    return "".join(parts).strip("\\"), i


def _is_declaration(toks: list[tuple[str, str]], i: int) -> bool:
    if i + 1 >= len(toks) or toks[i + 1][0] != "name":
        return False
    if "\\" in toks[i + 1][1]:
        return False
    prev = toks[i - 1] if i > 0 else ("", "")
    if prev[0] == "dcolon" or prev[1].lower() == "new":
        return False
    if toks[i][1].lower() == "enum":
        # enum 不是保留字: 要求 `enum Name {` 或 `enum Name: type` 或 `enum Name implements`
        nxt = toks[i + 2] if i + 2 < len(toks) else ("", "")
        return nxt[1] in ("{", ":") or nxt[1].lower() == "implements"
    # class 后面是 extends/implements 之类的关键字时不是声明
    return toks[i + 1][1].lower() not in ("extends", "implements")


def scan_file(path: Path) -> list[str]:
    """读取并扫描单个文件，读取失败记录告警并返回空列表"""
    try:
        source = path.read_text(encoding="utf-8", errors="replace")
    except OSError as e:
        logger.warning("读取源文件失败 %s: %s", path, e)
        return []
    return find_classes(source)
