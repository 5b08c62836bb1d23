"""Go import 声明解析单元测试"""

from __future__ import annotations

import pytest

from ven.core.goparse import GoSyntaxError, parse_imports


class TestParseImports:
    def test_grouped_imports_with_aliases(self) -> None:
        src = '''// Package x does things.
package x

import (
	"fmt"
	errs "github.com/pkg/errors"
	_ "github.com/lib/pq"
	. "github.com/onsi/gomega"
	`github.com/raw/string`
)

func f() {}
'''
        parsed = parse_imports(src)
        assert parsed.package == "x"
        assert parsed.imports == [
            "fmt",
            "github.com/pkg/errors",
            "github.com/lib/pq",
            "github.com/onsi/gomega",
            "github.com/raw/string",
        ]
        assert not parsed.is_main

    def test_multiple_single_imports_with_semicolons(self) -> None:
        src = 'package main; import "os"; import b "bytes"\nvar x = 1\n'
        parsed = parse_imports(src)
        assert parsed.is_main
        assert parsed.imports == ["os", "bytes"]

    def test_stops_at_first_declaration(self) -> None:
        src = 'package x\n\nimport "a.b/c"\n\nvar s = "import \\"d.e/f\\""\nimport "g.h/i"\n'
        assert parse_imports(src).imports == ["a.b/c"]

    def test_comments_skipped(self) -> None:
        src = '/* header\n import "no.pe/x" */\npackage x // trailing\nimport ( // c\n\t"a.b/c" /* inline */\n)\n'
        assert parse_imports(src).imports == ["a.b/c"]

    def test_no_imports(self) -> None:
        assert parse_imports("package empty\n\nfunc F() {}\n").imports == []

    def test_bom_stripped(self) -> None:
        assert parse_imports('\ufeffpackage x\nimport "a.b/c"\n').imports == ["a.b/c"]

    @pytest.mark.parametrize("src", [
        "",
        "func main() {}",
        'package x\nimport (\n\t"a.b/c"\n',
        'package x\nimport "unterminated\n',
        "package x\nimport 42\n",
        "package x\n/* open comment",
    ])
    def test_syntax_errors(self, src) -> None:
        with pytest.raises(GoSyntaxError):
            parse_imports(src)
