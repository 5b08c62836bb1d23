"""构建约束 (build constraint) 解析

只处理 package 子句之前的头部注释块，支持两种写法:

  // +build linux darwin,!cgo     空格分隔为 OR，逗号分隔为 AND，多行之间 AND
  //go:build linux && (386 || amd64)

判定规则: 把排除的 tag 视为 false，其余 tag 自由取值；若约束无论如何
都无法满足则该文件被排除。对 +build 行而言即 "某一行的所有候选项都被
排除时整个文件被排除，只要有一个候选项未被排除文件就保留"。
"""

from __future__ import annotations

import itertools
import re
from dataclasses import dataclass
from typing import Callable, Iterable

# 自由变量过多时放弃穷举，按可满足处理（保留文件）
MAX_FREE_TAGS = 12

Expr = Callable[[Callable[[str], bool]], bool]


@dataclass(frozen=True)
class Constraint:
    """解析后的约束: tags 为出现过的全部 tag，expr 为求值函数"""

    tags: frozenset[str]
    expr: Expr

    def evaluate(self, truth: Callable[[str], bool]) -> bool:
        return self.expr(truth)


def _tag(name: str) -> Expr:
    return lambda truth: truth(name)


def _not(e: Expr) -> Expr:
    return lambda truth: not e(truth)


def _all(items: list[Expr]) -> Expr:
    return lambda truth: all(e(truth) for e in items)


def _any(items: list[Expr]) -> Expr:
    return lambda truth: any(e(truth) for e in items)


# =========================================================================
# 头部注释提取
# =========================================================================

def header_lines(source: str) -> list[str]:
    """返回 package 子句之前的所有行"""
    lines: list[str] = []
    in_block = False
    for raw in source.splitlines():
        line = raw.strip()
        if in_block:
            lines.append(line)
            if "*/" in line:
                in_block = False
            continue
        if line.startswith("package ") or line == "package":
            break
        if line.startswith("/*"):
            in_block = "*/" not in line
        lines.append(line)
    return lines


# =========================================================================
# // +build
# =========================================================================

def parse_plus_build(line: str) -> tuple[Expr, set[str]] | None:
    """解析单行 `// +build ...`，非约束行返回 None"""
    if not line.startswith("//"):
        return None
    body = line[2:].strip()
    if not body.startswith("+build"):
        return None
    rest = body[len("+build"):]
    if rest and not rest[0].isspace():
        return None
    alternatives: list[Expr] = []
    tags: set[str] = set()
    for alt in rest.split():
        terms: list[Expr] = []
        for term in alt.split(","):
            if not term:
                continue
            negated = term.startswith("!")
            name = term.lstrip("!")
            if not name:
                continue
            tags.add(name)
            terms.append(_not(_tag(name)) if negated else _tag(name))
        if terms:
            alternatives.append(_all(terms))
    if not alternatives:
        return None
    return _any(alternatives), tags


# =========================================================================
# //go:build
# =========================================================================

_TOKEN_RE = re.compile(r"\s*(\|\||&&|!|\(|\)|[A-Za-z0-9_.]+)")


class _ExprParser:
    """go:build 表达式递归下降解析: or := and {'||' and}; and := not {'&&' not}"""

    def __init__(self, text: str) -> None:
        self.tokens: list[str] = []
        pos = 0
        text = text.rstrip()
        while pos < len(text):
            m = _TOKEN_RE.match(text, pos)
            if m is None:
                raise ValueError(f"非法 go:build 表达式: {text!r}")
            self.tokens.append(m.group(1))
            pos = m.end()
        self.pos = 0
        self.tags: set[str] = set()

    def parse(self) -> Expr:
        expr = self._or()
        if self.pos != len(self.tokens):
            raise ValueError(f"go:build 表达式多余 token: {self.tokens[self.pos]!r}")
        return expr

    def _peek(self) -> str | None:
        return self.tokens[self.pos] if self.pos < len(self.tokens) else None

    def _next(self) -> str:
        tok = self._peek()
        if tok is None:
            raise ValueError("go:build 表达式意外结束")
        self.pos += 1
        return tok

    def _or(self) -> Expr:
        items = [self._and()]
        while self._peek() == "||":
            self._next()
            items.append(self._and())
        return items[0] if len(items) == 1 else _any(items)

    def _and(self) -> Expr:
        items = [self._not()]
        while self._peek() == "&&":
            self._next()
            items.append(self._not())
        return items[0] if len(items) == 1 else _all(items)

    def _not(self) -> Expr:
        tok = self._next()
        if tok == "!":
            return _not(self._not())
        if tok == "(":
            expr = self._or()
            if self._next() != ")":
                raise ValueError("go:build 表达式括号不匹配")
            return expr
        if tok in ("||", "&&", ")"):
            raise ValueError(f"go:build 表达式非法位置: {tok!r}")
        self.tags.add(tok)
        return _tag(tok)


def parse_go_build(line: str) -> tuple[Expr, set[str]] | None:
    """解析 `//go:build expr`，非约束行返回 None；表达式非法抛 ValueError"""
    if not line.startswith("//go:build"):
        return None
    rest = line[len("//go:build"):]
    if rest and not rest[0].isspace():
        return None
    parser = _ExprParser(rest)
    return parser.parse(), parser.tags


# =========================================================================
# 组合与判定
# =========================================================================

def parse_constraint(lines: Iterable[str]) -> Constraint | None:
    """从头部注释行解析约束

    存在 //go:build 时以它为准（与 Go 工具链一致），否则所有 +build 行取 AND。
    没有任何约束返回 None。
    """
    plus: list[Expr] = []
    plus_tags: set[str] = set()
    for line in lines:
        go_build = parse_go_build(line)
        if go_build is not None:
            expr, tags = go_build
            return Constraint(frozenset(tags), expr)
        parsed = parse_plus_build(line)
        if parsed is not None:
            plus.append(parsed[0])
            plus_tags |= parsed[1]
    if not plus:
        return None
    return Constraint(frozenset(plus_tags), _all(plus))


def is_satisfiable(constraint: Constraint, excluded: set[str] | frozenset[str]) -> bool:
    """排除的 tag 取 false，其余 tag 穷举，是否存在满足约束的取值"""
    free = sorted(constraint.tags - set(excluded))
    if len(free) > MAX_FREE_TAGS:
        return True
    for values in itertools.product((False, True), repeat=len(free)):
        assignment = dict(zip(free, values))
        if constraint.evaluate(lambda tag: assignment.get(tag, False)):
            return True
    return False


def filename_excluded(filename: str, excluded: Iterable[str]) -> str:
    """按文件名后缀 `_<tag>.go` 判断，返回命中的 tag（未命中返回空串）"""
    for tag in sorted(excluded):
        if filename.endswith(f"_{tag}.go"):
            return tag
    return ""


def source_excluded(source: str, excluded: set[str] | frozenset[str]) -> bool:
    """源文件头部约束在排除集合下不可满足时返回 True"""
    if not excluded:
        return False
    try:
        constraint = parse_constraint(header_lines(source))
    except ValueError:
        # 无法解析的约束不据此排除文件
        return False
    if constraint is None:
        return False
    return not is_satisfiable(constraint, excluded)
