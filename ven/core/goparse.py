"""Go 源文件 import 声明解析

只解析 package 子句与其后的 import 声明，遇到第一个非 import 顶层声明即停止，
相当于 go/parser 的 ImportsOnly 模式。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterator

from ven.core.exceptions import VenError


class GoSyntaxError(VenError):
    """源文件头部无法解析"""

    code = "GO_SYNTAX_ERROR"


@dataclass
class GoFile:
    """单个源文件的解析结果"""

    package: str
    imports: list[str] = field(default_factory=list)

    @property
    def is_main(self) -> bool:
        return self.package == "main"


_IDENT_START = set("abcdefghijklmnopqrstuvwxyzABCDEFGHIJKLMNOPQRSTUVWXYZ_")
_ESCAPES = {"n": "\n", "t": "\t", "\\": "\\", '"': '"', "'": "'", "r": "\r"}


def _tokens(src: str) -> Iterator[tuple[str, str]]:
    """惰性词法分析，产出 (kind, value)；kind 为 ident / string / punct / other"""
    i, n = 0, len(src)
    while i < n:
        ch = src[i]
        if ch in " \t\r\n":
            i += 1
            continue
        if src.startswith("//", i):
            end = src.find("\n", i)
            i = n if end == -1 else end + 1
            continue
        if src.startswith("/*", i):
            end = src.find("*/", i + 2)
            if end == -1:
                raise GoSyntaxError("注释未闭合")
            i = end + 2
            continue
        if ch in _IDENT_START or ord(ch) > 127:
            j = i + 1
            while j < n and (src[j].isalnum() or src[j] == "_" or ord(src[j]) > 127):
                j += 1
            yield "ident", src[i:j]
            i = j
            continue
        if ch == '"':
            j, buf = i + 1, []
            while True:
                if j >= n or src[j] == "\n":
                    raise GoSyntaxError("字符串未闭合")
                c = src[j]
                if c == "\\" and j + 1 < n:
                    buf.append(_ESCAPES.get(src[j + 1], src[j + 1]))
                    j += 2
                    continue
                if c == '"':
                    break
                buf.append(c)
                j += 1
            yield "string", "".join(buf)
            i = j + 1
            continue
        if ch == "`":
            end = src.find("`", i + 1)
            if end == -1:
                raise GoSyntaxError("原始字符串未闭合")
            yield "string", src[i + 1:end]
            i = end + 1
            continue
        if ch in "();.":
            yield "punct", ch
            i += 1
            continue
        yield "other", ch
        i += 1


class _Parser:
    def __init__(self, src: str) -> None:
        self._it = _tokens(src)
        self._buf: tuple[str, str] | None = None

    def peek(self) -> tuple[str, str] | None:
        if self._buf is None:
            self._buf = next(self._it, None)
        return self._buf

    def next(self) -> tuple[str, str]:
        tok = self.peek()
        if tok is None:
            raise GoSyntaxError("文件意外结束")
        self._buf = None
        return tok

    def skip_semis(self) -> None:
        while self.peek() == ("punct", ";"):
            self.next()

    def import_spec(self) -> str:
        kind, value = self.next()
        # 可选别名: name / _ / .
        if kind == "ident" or (kind, value) == ("punct", "."):
            kind, value = self.next()
        if kind != "string":
            raise GoSyntaxError(f"import 路径应为字符串，实际为 {value!r}")
        return value

    def parse(self) -> GoFile:
        self.skip_semis()
        if self.next() != ("ident", "package"):
            raise GoSyntaxError("缺少 package 子句")
        kind, name = self.next()
        if kind != "ident":
            raise GoSyntaxError(f"非法包名: {name!r}")
        result = GoFile(package=name)
        self.skip_semis()
        while self.peek() == ("ident", "import"):
            self.next()
            if self.peek() == ("punct", "("):
                self.next()
                self.skip_semis()
                while self.peek() != ("punct", ")"):
                    result.imports.append(self.import_spec())
                    self.skip_semis()
                self.next()
            else:
                result.imports.append(self.import_spec())
            self.skip_semis()
        return result


def parse_imports(source: str) -> GoFile:
    """解析源码中的 package 名与 import 路径列表

    异常:
        GoSyntaxError: 头部结构非法
    """
    return _Parser(source.lstrip("\ufeff")).parse()
