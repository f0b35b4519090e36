"""Tests for dotnet_bump.deps."""

from __future__ import annotations

from pathlib import Path

import defusedxml
import defusedxml.ElementTree as ET
import pytest

from dotnet_bump.deps import (
    collect_package_references,
    find_project_files,
    read_package_references,
    resolve_package_versions,
    rewrite_project_file,
    rewrite_project_files,
    select_version,
)
from dotnet_bump.models import DEFAULT_EXCLUDED_PROJECT_FILES, DEFAULT_SKIP_PACKAGES


class TestFindProjectFiles:
    def test_recurses_and_excludes_denylist(self, repo: Path) -> None:
        files = find_project_files([repo / "src"], DEFAULT_EXCLUDED_PROJECT_FILES)
        assert [f.name for f in files] == ["Engine.csproj", "Utility.csproj"]

    def test_accepts_file_roots(self, repo: Path) -> None:
        project = repo / "src" / "Utility" / "Utility.csproj"
        assert find_project_files([project], []) == [project]

    def test_skips_missing_roots(self, repo: Path) -> None:
        files = find_project_files(
            [repo / "does-not-exist", repo / "src" / "Engine"], []
        )
        assert [f.name for f in files] == ["Engine.csproj"]

    def test_no_duplicates_for_overlapping_roots(self, repo: Path) -> None:
        files = find_project_files(
            [repo / "src", repo / "src" / "Engine" / "Engine.csproj"],
            DEFAULT_EXCLUDED_PROJECT_FILES,
        )
        assert len(files) == 2


class TestReadPackageReferences:
    def test_reads_attribute_and_element_versions(self, repo: Path) -> None:
        refs = read_package_references(repo / "src" / "Engine" / "Engine.csproj")
        assert [(r.name, r.current_version) for r in refs] == [
            ("System.Text.Json", "8.0.0-preview.5.23280.8"),
            ("Microsoft.Win32.Registry.AccessControl", "8.0.0-preview.6.23329.7"),
            ("System.Drawing.Common", "7.0.0"),
        ]

    def test_skips_property_versions(self, repo: Path) -> None:
        refs = read_package_references(repo / "src" / "Engine" / "Engine.csproj")
        assert "Microsoft.CodeAnalysis" not in {r.name for r in refs}

    def test_legacy_msbuild_namespace(self, tmp_path: Path) -> None:
        project = tmp_path / "Legacy.csproj"
        project.write_text(
            '<Project xmlns="http://schemas.microsoft.com/developer/msbuild/2003">'
            '<ItemGroup><PackageReference Include="Foo" Version="1.0.0" /></ItemGroup>'
            "</Project>"
        )
        refs = read_package_references(project)
        assert [(r.name, r.current_version) for r in refs] == [("Foo", "1.0.0")]

    def test_malformed_xml_propagates(self, tmp_path: Path) -> None:
        project = tmp_path / "Broken.csproj"
        project.write_text("<Project><ItemGroup></Project>")
        with pytest.raises(ET.ParseError):
            read_package_references(project)

    def test_entity_declarations_are_rejected(self, tmp_path: Path) -> None:
        project = tmp_path / "Entities.csproj"
        project.write_text(
            '<!DOCTYPE Project [<!ENTITY v "1.0.0">]>'
            '<Project><ItemGroup><PackageReference Include="Foo" Version="&v;" />'
            "</ItemGroup></Project>"
        )
        with pytest.raises(defusedxml.EntitiesForbidden):
            read_package_references(project)


class TestCollectPackageReferences:
    def test_groups_occurrences_by_name(self, repo: Path) -> None:
        files = find_project_files([repo / "src"], DEFAULT_EXCLUDED_PROJECT_FILES)
        packages = collect_package_references(files, DEFAULT_SKIP_PACKAGES)

        occurrences = packages["System.Text.Json"]
        assert len(occurrences) == 2
        assert {o.source_path.name for o in occurrences} == {
            "Engine.csproj",
            "Utility.csproj",
        }
        assert {o.current_version for o in occurrences} == {
            "8.0.0-preview.5.23280.8",
            "8.0.0-preview.6.23329.7",
        }

    def test_skips_excluded_packages(self, repo: Path) -> None:
        files = find_project_files([repo / "src"], DEFAULT_EXCLUDED_PROJECT_FILES)
        packages = collect_package_references(files, DEFAULT_SKIP_PACKAGES)
        assert "Newtonsoft.Json" not in packages


class TestSelectVersion:
    def test_first_feed_match_wins_over_highest(self) -> None:
        """Feed order decides, even when a later entry is newer."""
        result = select_version(
            "6.0.0", ["6.0.1-preview1", "6.0.1", "6.0.2"], "6.0.1"
        )
        assert result == "6.0.1-preview1"

    def test_strict_mode_requires_exact_pattern(self) -> None:
        result = select_version(
            "6.0.0", ["6.0.1-preview1", "6.0.1", "6.0.2"], "6.0.1", strict=True
        )
        assert result == "6.0.1"

    def test_skips_matches_that_are_not_newer(self) -> None:
        result = select_version("6.0.1", ["6.0.1", "6.0.1-preview1"], "6.0.1")
        assert result is None

    def test_no_match_returns_none(self) -> None:
        assert select_version("6.0.0", ["7.0.0", "6.0.2"], "6.0.1") is None

    def test_empty_feed(self) -> None:
        assert select_version("6.0.0", [], "6.0.1") is None


class TestResolvePackageVersions:
    def test_queries_feed_once_per_package(self, repo: Path, make_feed) -> None:
        files = find_project_files([repo / "src"], DEFAULT_EXCLUDED_PROJECT_FILES)
        packages = collect_package_references(files, DEFAULT_SKIP_PACKAGES)
        feed = make_feed({"System.Text.Json": ["8.0.0-preview.7.23375.6"]})

        resolve_package_versions(packages, feed, "8.0.0-preview.7")

        assert sorted(feed.queries) == sorted(packages)
        assert feed.queries.count("System.Text.Json") == 1

    def test_resolves_each_occurrence(self, repo: Path, make_feed) -> None:
        files = find_project_files([repo / "src"], DEFAULT_EXCLUDED_PROJECT_FILES)
        packages = collect_package_references(files, DEFAULT_SKIP_PACKAGES)
        feed = make_feed(
            {
                "System.Text.Json": [
                    "8.0.0-preview.7.23375.6",
                    "8.0.0-preview.6.23329.7",
                ],
                "Microsoft.Win32.Registry.AccessControl": ["8.0.0-preview.6.23329.7"],
            }
        )

        resolved = resolve_package_versions(packages, feed, "8.0.0-preview.7")

        assert [(r.name, r.resolved_new_version) for r in resolved] == [
            ("System.Text.Json", "8.0.0-preview.7.23375.6"),
            ("System.Text.Json", "8.0.0-preview.7.23375.6"),
        ]
        unresolved = packages["Microsoft.Win32.Registry.AccessControl"][0]
        assert unresolved.resolved_new_version is None


class TestRewriteProjectFile:
    def test_replaces_exact_declaration(self, repo: Path) -> None:
        project = repo / "src" / "Utility" / "Utility.csproj"
        refs = read_package_references(project)
        refs[0].resolved_new_version = "8.0.0-preview.7.23375.6"

        assert rewrite_project_file(project, refs) is True

        content = project.read_text()
        assert (
            '<PackageReference Include="System.Text.Json" '
            'Version="8.0.0-preview.7.23375.6" />' in content
        )
        assert "8.0.0-preview.6.23329.7" not in content
        assert '<PackageReference Include="Newtonsoft.Json" Version="13.0.1" />' in content

    def test_keeps_crlf_line_endings(self, tmp_path: Path) -> None:
        project = tmp_path / "Foo.csproj"
        before = (
            b'<Project Sdk="Microsoft.NET.Sdk">\r\n'
            b'  <ItemGroup>\r\n'
            b'    <PackageReference Include="System.Text.Json" '
            b'Version="8.0.0-preview.6.23329.7" />\r\n'
            b'  </ItemGroup>\r\n'
            b'</Project>\r\n'
        )
        project.write_bytes(before)
        refs = read_package_references(project)
        refs[0].resolved_new_version = "8.0.0-preview.7.23375.6"

        assert rewrite_project_file(project, refs) is True

        after = project.read_bytes()
        assert after == before.replace(
            b"8.0.0-preview.6.23329.7", b"8.0.0-preview.7.23375.6"
        )
        assert after.count(b"\r\n") == before.count(b"\r\n")

    def test_non_verbatim_declaration_is_left_alone(self, repo: Path) -> None:
        project = repo / "src" / "Engine" / "Engine.csproj"
        before = project.read_text()
        refs = [
            r
            for r in read_package_references(project)
            if r.name == "System.Drawing.Common"
        ]
        refs[0].resolved_new_version = "8.0.0"

        assert rewrite_project_file(project, refs) is False
        assert project.read_text() == before

    def test_no_resolved_refs_does_not_write(self, repo: Path) -> None:
        project = repo / "src" / "Utility" / "Utility.csproj"
        mtime = project.stat().st_mtime_ns
        assert rewrite_project_file(project, read_package_references(project)) is False
        assert project.stat().st_mtime_ns == mtime


class TestRewriteProjectFiles:
    def test_end_to_end_update(self, repo: Path, make_feed) -> None:
        """Newer matching versions land in files; skipped packages never change."""
        files = find_project_files([repo / "src"], DEFAULT_EXCLUDED_PROJECT_FILES)
        packages = collect_package_references(files, DEFAULT_SKIP_PACKAGES)
        feed = make_feed(
            {
                "System.Text.Json": ["8.0.0-preview.7.23375.6"],
                "Newtonsoft.Json": ["13.0.3"],
            }
        )
        resolved = resolve_package_versions(packages, feed, "8.0.0-preview.7")

        written = rewrite_project_files(resolved)

        assert {p.name for p in written} == {"Engine.csproj", "Utility.csproj"}
        utility = (repo / "src" / "Utility" / "Utility.csproj").read_text()
        assert 'Include="System.Text.Json" Version="8.0.0-preview.7.23375.6"' in utility
        assert 'Include="Newtonsoft.Json" Version="13.0.1"' in utility
        assert "Newtonsoft.Json" not in feed.queries

    def test_gallery_projects_untouched(self, repo: Path, make_feed) -> None:
        gallery = repo / "src" / "PSGalleryModules.csproj"
        before = gallery.read_text()
        files = find_project_files([repo / "src"], DEFAULT_EXCLUDED_PROJECT_FILES)
        packages = collect_package_references(files, DEFAULT_SKIP_PACKAGES)
        resolved = resolve_package_versions(
            packages, make_feed({"PSReadLine": ["2.3.0"]}), "2."
        )

        rewrite_project_files(resolved)

        assert gallery.read_text() == before
