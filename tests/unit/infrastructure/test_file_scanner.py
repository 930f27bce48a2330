"""Tests for SourceFileScanner."""

from pathlib import Path

import pytest

from codeopt.domain.entities import FileRecord
from codeopt.domain.errors import DiscoveryError
from codeopt.infrastructure.scanner.file_scanner import (
    SourceFileScanner,
    is_binary_file,
    optimization_potential,
)


@pytest.fixture
def solution(tmp_path):
    """Small solution tree with build output and generated files."""
    root = tmp_path / "Shop"
    (root / "Shop.Core").mkdir(parents=True)
    (root / "Shop.Core" / "Cart.cs").write_text("class Cart { }")
    (root / "Shop.Core" / "Cart.Designer.cs").write_text("partial class Cart { }")
    (root / "Shop.Web").mkdir()
    (root / "Shop.Web" / "Program.cs").write_text("class Program { }")
    (root / "Shop.Web" / "site.js").write_text("console.log(1)")
    for build_dir in ("bin", "obj", ".git", "optimized_solution"):
        (root / "Shop.Web" / build_dir).mkdir()
        (root / "Shop.Web" / build_dir / "Skipped.cs").write_text("class Skipped { }")
    (root / "Shop.sln").write_text("Microsoft Visual Studio Solution File")
    return root


def _names(records: list[FileRecord]) -> list[str]:
    return [Path(r.path).name for r in records]


class TestScan:
    """Tests for SourceFileScanner.scan."""

    def test_directory_root(self, solution):
        records = SourceFileScanner().scan(str(solution))

        assert _names(records) == ["Cart.cs", "Program.cs"]
        assert all(r.language == "csharp" for r in records)
        assert records[0].content == "class Cart { }"

    def test_solution_file_root_scans_its_directory(self, solution):
        records = SourceFileScanner().scan(str(solution / "Shop.sln"))
        assert _names(records) == ["Cart.cs", "Program.cs"]

    def test_single_file_root(self, solution):
        records = SourceFileScanner().scan(str(solution / "Shop.Web" / "Program.cs"))
        assert _names(records) == ["Program.cs"]

    def test_single_file_with_other_extension(self, solution):
        assert SourceFileScanner().scan(str(solution / "Shop.Web" / "site.js")) == []

    def test_optimized_output_in_custom_dir_not_rescanned(self, solution):
        """Files saved as optimized_<name> outside optimized_solution are still skipped."""
        out = solution / "review"
        out.mkdir()
        (out / "optimized_Cart.cs").write_text("sealed class Cart { }")

        records = SourceFileScanner().scan(str(solution))

        assert _names(records) == ["Cart.cs", "Program.cs"]

    def test_extra_extensions(self, solution):
        records = SourceFileScanner(extensions=[".cs", ".js"]).scan(str(solution))

        by_name = {Path(r.path).name: r for r in records}
        assert by_name["site.js"].language == "javascript"

    @pytest.mark.parametrize("root", ["", "   "])
    def test_empty_root_rejected(self, root):
        with pytest.raises(DiscoveryError):
            SourceFileScanner().scan(root)

    def test_missing_root_rejected(self, tmp_path):
        with pytest.raises(DiscoveryError, match="Path not found"):
            SourceFileScanner().scan(str(tmp_path / "missing"))

    def test_empty_directory(self, tmp_path):
        assert SourceFileScanner().scan(str(tmp_path)) == []

    def test_size_limit(self, tmp_path):
        (tmp_path / "Big.cs").write_text("x" * 2000)
        (tmp_path / "Small.cs").write_text("x")

        records = SourceFileScanner(max_file_size=1000).scan(str(tmp_path))

        assert _names(records) == ["Small.cs"]

    def test_file_count_limit(self, tmp_path):
        for i in range(5):
            (tmp_path / f"F{i}.cs").write_text("class F { }")

        assert len(SourceFileScanner(max_files=3).scan(str(tmp_path))) == 3

    def test_binary_files_skipped(self, tmp_path):
        (tmp_path / "Blob.cs").write_bytes(b"\x00\x01\x02binary")
        (tmp_path / "Text.cs").write_text("class Text { }")

        assert _names(SourceFileScanner().scan(str(tmp_path))) == ["Text.cs"]

    def test_bom_stripped(self, tmp_path):
        (tmp_path / "Bom.cs").write_bytes(b"\xef\xbb\xbfclass Bom { }")
        assert SourceFileScanner().scan(str(tmp_path))[0].content == "class Bom { }"


class TestPrioritize:
    """Tests for prioritization by memory-pattern score."""

    def test_most_promising_first(self):
        plain = FileRecord(path="Plain.cs", content="class Plain { int x; }")
        heavy = FileRecord(
            path="Heavy.cs",
            content='var list = new List<int>(); var al = new ArrayList(); s += "x"; items.ToList();',
        )
        light = FileRecord(path="Light.cs", content="foreach (var x in xs) { }")

        ordered = SourceFileScanner().prioritize([plain, heavy, light])

        assert [r.path for r in ordered] == ["Heavy.cs", "Light.cs", "Plain.cs"]

    def test_stable_for_equal_scores(self):
        files = [FileRecord(path=f"{i}.cs", content="class A { }") for i in range(4)]
        assert SourceFileScanner().prioritize(files) == files

    def test_same_element_set(self):
        files = [FileRecord(path="a.cs", content='s += "a";'), FileRecord(path="b.cs")]
        assert sorted(SourceFileScanner().prioritize(files), key=lambda r: r.path) == files

    def test_potential_scores(self):
        assert optimization_potential("class A { }") == 0
        assert optimization_potential("var l = new List<string>();") > 0


def test_is_binary_file(tmp_path):
    text = tmp_path / "t.cs"
    text.write_text("hello\n")
    blob = tmp_path / "b.cs"
    blob.write_bytes(b"\x00abc")

    assert is_binary_file(text) is False
    assert is_binary_file(blob) is True
    assert is_binary_file(tmp_path / "missing.cs") is True
