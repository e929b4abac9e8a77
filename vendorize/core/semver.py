"""版本号规范化与约束求值

纯函数库，无状态、无 IO。

约束语法:
    expr    := orTerm ("||" orTerm)*
    orTerm  := andTerm (空白或逗号 andTerm)*
    andTerm := "*" | 比较运算 | ~范围 | ^范围 | 连字符范围 | 通配版本 | 裸版本

语义:
    ~X.Y.Z      >=X.Y.Z <X.(Y+1).0
    ^X.Y.Z      >=X.Y.Z <(X+1).0.0
    A - B       >=A <=B
    X.Y.*       >=X.Y.0 <X.(Y+1).0
    裸版本       规范化后精确匹配
    "*" / 空串   恒为真

单个子句格式错误时记录告警并忽略（不参与约束）；
整条表达式没有任何可用子句时 parse_constraint 抛 InvalidConstraintError，
satisfies 则返回 False，从不抛异常。
"""

from __future__ import annotations

import functools
import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass

from vendorize.core.exceptions import InvalidConstraintError

logger = logging.getLogger(__name__)

OPERATORS = (">=", "<=", "!=", ">", "<", "=")

_VERSION_RE = re.compile(r"^v?\d+(\.\d+)*([.\-+][0-9A-Za-z.\-+]*)?$", re.IGNORECASE)
_BRANCH_RE = re.compile(r"^dev-[0-9A-Za-z._/\-]+$")
_WILDCARD_RE = re.compile(r"^v?(\d+)(?:\.(\d+))?\.[*xX]$")
_CLAUSE_RE = re.compile(r"^(>=|<=|!=|>|<|==|=|~|\^)?(.*)$")
_STABILITY_RE = re.compile(r"@(dev|alpha|beta|rc|RC|stable)$")
_HEAD_RE = re.compile(r"^(\d+)(.*)$")


@dataclass(frozen=True)
class Clause:
    """单个比较子句"""

    operator: str
    version: str

    def matches(self, version: str) -> bool:
        c = compare(version, self.version)
        if self.operator == ">=":
            return c >= 0
        if self.operator == "<=":
            return c <= 0
        if self.operator == ">":
            return c > 0
        if self.operator == "<":
            return c < 0
        if self.operator == "!=":
            return c != 0
        return c == 0


# =========================================================================
# 规范化与比较
# =========================================================================

def normalize(version: str) -> str:
    """规范化为恰好三段: 去掉前导 v，补 0 或截断

    >>> normalize("v1.2")
    '1.2.0'
    >>> normalize("1.2.3.4")
    '1.2.3'
    """
    v = version.strip()
    if v[:1] in ("v", "V"):
        v = v[1:]
    parts = v.split(".") if v else []
    while len(parts) < 3:
        parts.append("0")
    return ".".join(parts[:3])


def _compare_component(a: str, b: str) -> int:
    if a.isdigit() and b.isdigit():
        return (int(a) > int(b)) - (int(a) < int(b))
    ma, mb = _HEAD_RE.match(a), _HEAD_RE.match(b)
    if ma and mb:
        ha, hb = int(ma.group(1)), int(mb.group(1))
        if ha != hb:
            return (ha > hb) - (ha < hb)
        sa, sb = ma.group(2), mb.group(2)
        # 无后缀的正式版排在预发布之后
        if not sa or not sb:
            return (not sa) - (not sb)
        return (sa > sb) - (sa < sb)
    return (a > b) - (a < b)


def compare(a: str, b: str) -> int:
    """比较两个版本号，返回 -1 / 0 / 1"""
    for pa, pb in zip(normalize(a).split("."), normalize(b).split(".")):
        c = _compare_component(pa, pb)
        if c:
            return c
    return 0


def sort_descending(versions: Iterable[str]) -> list[str]:
    """按版本号从高到低排序"""
    return sorted(versions, key=functools.cmp_to_key(compare), reverse=True)


def is_branch(constraint: str, prefix: str = "dev-") -> bool:
    """约束是否为分支引用（如 dev-main）"""
    c = _STABILITY_RE.sub("", constraint.strip())
    return c.startswith(prefix) and len(c) > len(prefix) and " " not in c


# =========================================================================
# 约束解析
# =========================================================================

def _is_version(token: str) -> bool:
    return bool(_VERSION_RE.match(token) or _BRANCH_RE.match(token))


def _bump(version: str, index: int) -> str:
    parts = normalize(version).split(".")
    head = _HEAD_RE.match(parts[index])
    number = int(head.group(1)) if head else 0
    bumped = parts[:index] + [str(number + 1)]
    bumped += ["0"] * (3 - len(bumped))
    return ".".join(bumped)


def _expand(term: str) -> list[Clause] | None:
    """把单个 andTerm 展开为子句列表，格式错误返回 None"""
    if term == "*":
        return []

    wildcard = _WILDCARD_RE.match(term)
    if wildcard:
        major, minor = wildcard.group(1), wildcard.group(2)
        if minor is None:
            low = f"{major}.0.0"
            return [Clause(">=", low), Clause("<", _bump(low, 0))]
        low = f"{major}.{minor}.0"
        return [Clause(">=", low), Clause("<", _bump(low, 1))]

    m = _CLAUSE_RE.match(term)
    op, version = (m.group(1) or "="), m.group(2)
    if not _is_version(version):
        return None
    if op == "~":
        return [Clause(">=", version), Clause("<", _bump(version, 1))]
    if op == "^":
        return [Clause(">=", version), Clause("<", _bump(version, 0))]
    if op == "==":
        op = "="
    return [Clause(op, version)]


def _tokenize(or_term: str) -> list[str]:
    """切分 andTerm，合并 "A - B" 与分离书写的运算符 (">= 1.0")"""
    raw = or_term.replace(",", " ").split()
    tokens: list[str] = []
    i = 0
    while i < len(raw):
        tok = raw[i]
        if i + 2 < len(raw) and raw[i + 1] == "-":
            tokens.append(f"{tok} - {raw[i + 2]}")
            i += 3
            continue
        if tok in OPERATORS + ("==", "~", "^") and i + 1 < len(raw):
            tokens.append(tok + raw[i + 1])
            i += 2
            continue
        tokens.append(tok)
        i += 1
    return tokens


def parse_constraint(expr: str) -> list[list[Clause]]:
    """解析约束表达式为 "或" 分支列表，每个分支是 "与" 子句列表

    Raises:
        InvalidConstraintError: 表达式非空但没有任何可用子句
    """
    text = expr.strip()
    if not text or text == "*":
        return [[]]

    branches: list[list[Clause]] = []
    valid = 0
    for or_term in text.split("||"):
        terms = _tokenize(or_term)
        if not terms:
            continue
        clauses: list[Clause] = []
        branch_valid = 0
        for term in terms:
            term = _STABILITY_RE.sub("", term)
            if " - " in term:
                low, high = term.split(" - ", 1)
                if _is_version(low) and _is_version(high):
                    clauses += [Clause(">=", low), Clause("<=", high)]
                    branch_valid += 1
                    continue
                expanded = None
            else:
                expanded = _expand(term)
            if expanded is None:
                logger.warning("忽略格式错误的约束子句: '%s' (表达式 '%s')", term, expr)
                continue
            clauses += expanded
            branch_valid += 1
        # 全部子句都无效的分支不参与求值
        if branch_valid:
            branches.append(clauses)
            valid += branch_valid

    if valid == 0:
        raise InvalidConstraintError(expr)
    return branches


def satisfies(version: str, expr: str) -> bool:
    """version 是否满足约束表达式，从不抛异常"""
    try:
        branches = parse_constraint(expr)
    except InvalidConstraintError:
        logger.warning("约束无法解析，视为不满足: '%s'", expr)
        return False
    return any(all(c.matches(version) for c in clauses) for clauses in branches)
