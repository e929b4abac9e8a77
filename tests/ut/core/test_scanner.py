"""PHP 类型声明扫描器测试"""

from __future__ import annotations

from pathlib import Path

from vendorize.core.autoload.scanner import find_classes, scan_file


class TestFindClasses:
    def test_global_class(self) -> None:
        assert find_classes("<?php\nclass Foo {}\n") == ["Foo"]

    def test_namespaced_declarations(self) -> None:
        src = """<?php
namespace Acme\\Foo;

interface Contract {}
abstract class Base implements Contract {}
final class Client extends Base {}
trait Helpers {}
enum Status: string { case On = 'on'; }
"""
        assert find_classes(src) == [
            "Acme\\Foo\\Contract",
            "Acme\\Foo\\Base",
            "Acme\\Foo\\Client",
            "Acme\\Foo\\Helpers",
            "Acme\\Foo\\Status",
        ]

    def test_multiple_namespace_statements(self) -> None:
        src = "<?php\nnamespace A;\nclass X {}\nnamespace B\\C;\nclass Y {}\n"
        assert find_classes(src) == ["A\\X", "B\\C\\Y"]

    def test_braced_namespaces(self) -> None:
        src = """<?php
namespace Outer {
    class One { function f() { if (true) { return 1; } } }
}
namespace {
    class Two {}
}
"""
        assert find_classes(src) == ["Outer\\One", "Two"]

    def test_class_constant_and_anonymous_class_ignored(self) -> None:
        src = """<?php
namespace App;
$a = Foo::class;
$b = new class { };
$c = new class(1) extends Base {};
class Real {}
"""
        assert find_classes(src) == ["App\\Real"]

    def test_comments_and_strings_ignored(self) -> None:
        src = """<?php
// class InComment {}
# class InHash {}
/* class InBlock {} */
/** @see class InDoc */
$s = 'class InSingle {}';
$d = "class InDouble {}";
$h = <<<EOT
class InHeredoc {}
EOT;
$n = <<<'EOT'
class InNowdoc {}
EOT;
class Visible {}
"""
        assert find_classes(src) == ["Visible"]

    def test_html_outside_php_tags_ignored(self) -> None:
        src = "<html>class NotCode {}</html><?php class Inside {} ?><p>class Nope {}</p>"
        assert find_classes(src) == ["Inside"]

    def test_enum_as_identifier_not_declaration(self) -> None:
        src = "<?php\nfunction enum($x) {}\n$enum = enum(1);\nclass K {}\n"
        assert find_classes(src) == ["K"]

    def test_attribute_before_class(self) -> None:
        src = "<?php\nnamespace N;\n#[Attribute]\nclass Attr {}\n"
        assert find_classes(src) == ["N\\Attr"]

    def test_no_php_tag(self) -> None:
        assert find_classes("class Foo {}") == []

    def test_duplicates_reported_once(self) -> None:
        src = "<?php\nif (PHP_VERSION_ID > 80000) { class Poly {} } else { class Poly {} }\n"
        assert find_classes(src) == ["Poly"]


class TestScanFile:
    def test_scan_file(self, tmp_path: Path) -> None:
        f = tmp_path / "Foo.php"
        f.write_text("<?php namespace X; class Foo {}", encoding="utf-8")
        assert scan_file(f) == ["X\\Foo"]

    def test_unreadable_file(self, tmp_path: Path) -> None:
        assert scan_file(tmp_path / "missing.php") == []
