"""Tests for the build session.

Covers the export loop end to end with fake collaborators:
1. First export writes every page, dependency and global asset
2. A repeated export of an unchanged vault writes only pages it must
3. Changed, removed and failed sources under incremental export
4. Cancellation leaves the persisted export index untouched
"""

from __future__ import annotations

import pytest

from vaultsite.artifacts import Artifact
from vaultsite.config import ExportConfig
from vaultsite.environment import BANNERS, EnvironmentCapabilities, ExtensionInfo
from vaultsite.errors import BuildError
from vaultsite.index import ExportIndex
from vaultsite.paths import INDEX_FILENAME
from vaultsite.website import Website
from vaultsite.writer import write_result

from tests.helpers import CancelAfter, FakeGenerator, RecordingProgress, StaticAssets, paths, source


def _assets() -> StaticAssets:
    return StaticAssets(
        [
            Artifact.from_text("lib/styles/main.css", "body {}"),
            Artifact.from_text("lib/scripts/site.js", "void 0;"),
            Artifact(relative_path="lib/fonts/inter.woff2", content=b"font-v1"),
        ]
    )


def _run(files, destination, generator=None, assets=None, **kwargs):
    website = Website(
        generator or FakeGenerator(),
        index=ExportIndex.for_destination(destination),
        assets=assets if assets is not None else _assets(),
        **kwargs,
    )
    return website, website.build(files, destination)


# =============================================================================
# First export
# =============================================================================


class TestFirstExport:
    def test_writes_pages_dependencies_and_assets(self, destination):
        """Three notes, one shared image: everything is written once."""
        image = Artifact(relative_path="img/a.png", content=b"png", modified_time=50.0)
        generator = FakeGenerator(dependencies={"a.md": [image], "b.md": [image]})
        files = [source("a.md"), source("b.md"), source("c.md")]

        website, result = _run(files, destination, generator)

        assert not result.incremental
        assert not result.cancelled
        assert paths(result.write_set) == [
            "img/a.png",
            "a.html",
            "b.html",
            "c.html",
            "lib/styles/main.css",
            "lib/scripts/site.js",
            "lib/fonts/inter.woff2",
        ]
        assert paths(result.dependencies) == [
            "img/a.png",
            "lib/styles/main.css",
            "lib/scripts/site.js",
            "lib/fonts/inter.woff2",
        ]
        assert result.generated == ["a.md", "b.md", "c.md"]
        assert len(website.webpages) == 3
        assert website.progress == 3

    def test_commits_index(self, destination):
        files = [source("a.md"), source("b.md")]
        _run(files, destination)

        index = ExportIndex.for_destination(destination)
        assert index.global_incremental_eligible()
        assert set(index.entries) == {
            "a.html",
            "b.html",
            "lib/styles/main.css",
            "lib/scripts/site.js",
            "lib/fonts/inter.woff2",
        }
        assert index.sources["a.md"].outputs == ["a.html"]

    def test_write_set_has_unique_paths(self, destination):
        first = Artifact(relative_path="shared/icon.png", content=b"first")
        second = Artifact(relative_path="shared/icon.png", content=b"second-and-longer")
        generator = FakeGenerator(dependencies={"a.md": [first], "b.md": [second]})

        _, result = _run([source("a.md"), source("b.md")], destination, generator)

        written = paths(result.write_set)
        assert len(written) == len(set(written))
        icon = next(a for a in result.write_set if a.relative_path == "shared/icon.png")
        assert icon.content == b"first"

    def test_global_asset_duplicate_of_dependency_keeps_dependency(self, destination):
        dep = Artifact.from_text("lib/styles/main.css", "from page")
        generator = FakeGenerator(dependencies={"a.md": [dep]})

        _, result = _run([source("a.md")], destination, generator)

        css = [a for a in result.write_set if a.relative_path == "lib/styles/main.css"]
        assert len(css) == 1
        assert css[0].content == b"from page"

    def test_empty_batch_raises(self, destination):
        website = Website(FakeGenerator())
        with pytest.raises(BuildError):
            website.build([], destination)

    def test_creates_destination(self, tmp_path):
        target = tmp_path / "nested" / "site"
        website = Website(FakeGenerator())
        website.build([source("a.md")], target)
        assert target.is_dir()
        assert (target / INDEX_FILENAME).exists()

    def test_opens_index_from_destination(self, destination):
        website = Website(FakeGenerator())
        website.build([source("a.md")], destination)
        assert website.index is not None
        assert website.index.path == destination / INDEX_FILENAME

    def test_no_output_file_is_not_recorded(self, destination):
        generator = FakeGenerator(empty={"b.md"})
        _, result = _run([source("a.md"), source("b.md")], destination, generator)

        assert "b.html" not in paths(result.write_set)
        assert result.generated == ["a.md"]
        assert "b.md" not in ExportIndex.for_destination(destination).sources


# =============================================================================
# Incremental export
# =============================================================================


class TestIncrementalExport:
    def test_unchanged_vault_writes_nothing(self, destination):
        """Second export of identical inputs skips every source."""
        files = [source("a.md"), source("b.md"), source("c.md")]
        _run(files, destination)

        generator = FakeGenerator()
        _, result = _run(files, destination, generator)

        assert result.incremental
        assert result.write_set == []
        assert result.skipped == ["a.md", "b.md", "c.md"]
        assert generator.calls == []

    def test_only_newer_source_is_regenerated(self, destination):
        """A unchanged, B touched: only B's page is written."""
        image = Artifact(relative_path="img/a.png", content=b"png", modified_time=50.0)
        _run(
            [source("a.md"), source("b.md")],
            destination,
            FakeGenerator(dependencies={"a.md": [image]}),
        )

        generator = FakeGenerator(dependencies={"a.md": [image]})
        _, result = _run([source("a.md"), source("b.md", mtime=200.0)], destination, generator)

        assert generator.calls == ["b.md"]
        assert paths(result.write_set) == ["b.html"]
        assert result.skipped == ["a.md"]
        assert result.generated == ["b.md"]

    def test_same_mtime_different_size_is_changed(self, destination):
        _run([source("a.md")], destination)
        generator = FakeGenerator()
        _run([source("a.md", size=99)], destination, generator)
        assert generator.calls == ["a.md"]

    def test_unchanged_dependency_is_filtered(self, destination):
        image = Artifact(relative_path="img/a.png", content=b"png", modified_time=50.0)
        generator = FakeGenerator(dependencies={"a.md": [image]})
        _run([source("a.md")], destination, generator)

        # a.md changed but still references the same image
        _, result = _run([source("a.md", mtime=300.0)], destination, FakeGenerator(dependencies={"a.md": [image]}))

        assert paths(result.write_set) == ["a.html"]
        assert paths(result.dependencies) == []

    def test_changed_dependency_is_written(self, destination):
        old = Artifact(relative_path="img/a.png", content=b"png", modified_time=50.0)
        _run([source("a.md")], destination, FakeGenerator(dependencies={"a.md": [old]}))

        new = Artifact(relative_path="img/a.png", content=b"png", modified_time=60.0)
        _, result = _run([source("a.md", mtime=300.0)], destination, FakeGenerator(dependencies={"a.md": [new]}))

        assert "img/a.png" in paths(result.write_set)

    def test_published_font_is_never_rewritten(self, destination):
        _run([source("a.md")], destination)

        changed_font = Artifact(relative_path="lib/fonts/inter.woff2", content=b"font-v2-bigger", modified_time=999.0)
        new_font = Artifact(relative_path="lib/fonts/mono.ttf", content=b"mono")
        assets = StaticAssets([changed_font, new_font])
        _, result = _run([source("a.md")], destination, assets=assets)

        assert paths(result.write_set) == ["lib/fonts/mono.ttf"]

    def test_global_page_asset_is_always_written(self, destination):
        tree = Artifact.from_text("lib/html/file-tree.html", "<ul></ul>")
        _run([source("a.md")], destination, assets=StaticAssets([tree]))
        _, result = _run([source("a.md")], destination, assets=StaticAssets([tree]))
        assert paths(result.write_set) == ["lib/html/file-tree.html"]

    def test_removed_source_outputs_are_reported(self, destination):
        image = Artifact(relative_path="img/b.png", content=b"png")
        _run(
            [source("a.md"), source("b.md")],
            destination,
            FakeGenerator(dependencies={"b.md": [image]}),
        )

        _, result = _run([source("a.md")], destination)

        assert result.removed == ["b.html", "img/b.png"]
        index = ExportIndex.for_destination(destination)
        assert "b.md" not in index.sources
        assert "b.html" not in index.entries

    def test_output_still_referenced_is_not_removed(self, destination):
        shared = Artifact(relative_path="img/shared.png", content=b"png")
        deps = {"a.md": [shared], "b.md": [shared]}
        _run([source("a.md"), source("b.md")], destination, FakeGenerator(dependencies=deps))

        _, result = _run([source("a.md")], destination)

        assert result.removed == ["b.html"]
        assert "img/shared.png" in ExportIndex.for_destination(destination).entries

    def test_failed_source_is_retried_next_run(self, destination):
        _, first = _run([source("a.md"), source("b.md")], destination, FakeGenerator(fail={"b.md"}))
        assert first.failed == ["b.md"]

        generator = FakeGenerator()
        _, second = _run([source("a.md"), source("b.md")], destination, generator)

        assert generator.calls == ["b.md"]
        assert paths(second.write_set) == ["b.html"]

    def test_failed_regeneration_keeps_published_outputs(self, destination):
        """B published, then touched and failing: its page stays on disk and in the index."""
        image = Artifact(relative_path="img/b.png", content=b"png")
        _run(
            [source("a.md"), source("b.md")],
            destination,
            FakeGenerator(dependencies={"b.md": [image]}),
            writer=write_result,
        )

        files = [source("a.md"), source("b.md", mtime=200.0)]
        _, result = _run(files, destination, FakeGenerator(fail={"b.md"}), writer=write_result)

        assert result.failed == ["b.md"]
        assert result.removed == []
        assert (destination / "b.html").exists()
        assert (destination / "img/b.png").exists()
        index = ExportIndex.for_destination(destination)
        assert {"b.html", "img/b.png"} <= set(index.entries)
        assert index.sources["b.md"].modified_time == 100.0

        generator = FakeGenerator(dependencies={"b.md": [image]})
        _, retried = _run(files, destination, generator, writer=write_result)

        assert generator.calls == ["b.md"]
        assert retried.failed == []
        assert ExportIndex.for_destination(destination).sources["b.md"].modified_time == 200.0

    def test_crashing_regeneration_keeps_published_outputs(self, destination):
        _run([source("a.md")], destination, writer=write_result)

        _, result = _run([source("a.md", mtime=200.0)], destination, FakeGenerator(crash={"a.md"}), writer=write_result)

        assert result.failed == ["a.md"]
        assert result.removed == []
        assert (destination / "a.html").exists()
        assert "a.html" in ExportIndex.for_destination(destination).entries

    def test_config_can_force_full_export(self, destination):
        files = [source("a.md")]
        _run(files, destination)

        generator = FakeGenerator()
        _, result = _run(files, destination, generator, config=ExportConfig(incremental=False))

        assert not result.incremental
        assert generator.calls == ["a.md"]
        assert "lib/fonts/inter.woff2" in paths(result.write_set)

    def test_corrupted_index_falls_back_to_full_export(self, destination):
        _run([source("a.md")], destination)
        (destination / INDEX_FILENAME).write_text("{not json", encoding="utf-8")

        generator = FakeGenerator()
        _, result = _run([source("a.md")], destination, generator)

        assert not result.incremental
        assert generator.calls == ["a.md"]
        assert ExportIndex.for_destination(destination).global_incremental_eligible()


# =============================================================================
# Failures
# =============================================================================


class TestFailures:
    def test_generation_failure_is_not_fatal(self, destination):
        generator = FakeGenerator(fail={"b.md"}, crash={"c.md"})
        _, result = _run([source("a.md"), source("b.md"), source("c.md"), source("d.md")], destination, generator)

        assert result.failed == ["b.md", "c.md"]
        assert "a.html" in paths(result.write_set)
        assert "d.html" in paths(result.write_set)

    def test_writer_receives_result(self, destination):
        received = []
        _run([source("a.md")], destination, writer=lambda result, dest: received.append((result, dest)))
        assert len(received) == 1
        assert received[0][1] == destination

    def test_writer_failure_keeps_previous_index(self, destination):
        _run([source("a.md")], destination)
        before = (destination / INDEX_FILENAME).read_bytes()

        def broken_writer(result, dest):
            raise OSError("disk full")

        with pytest.raises(OSError):
            _run([source("a.md", mtime=500.0)], destination, writer=broken_writer)

        assert (destination / INDEX_FILENAME).read_bytes() == before

    def test_dry_run_does_not_persist_index(self, destination):
        _run([source("a.md")], destination, persist_index=False)
        assert not (destination / INDEX_FILENAME).exists()

    def test_progress_callback_errors_are_ignored(self, destination):
        def broken_progress(current, total, label):
            raise ValueError("display closed")

        _, result = _run([source("a.md")], destination, progress=broken_progress)
        assert paths(result.pages) == ["a.html"]

    def test_advisories_do_not_block_export(self, destination):
        caps = EnvironmentCapabilities({BANNERS: ExtensionInfo(BANNERS, version="1.0.0")})
        _, result = _run([source("a.md")], destination, capabilities=caps)
        assert not result.cancelled


# =============================================================================
# Cancellation
# =============================================================================


class TestCancellation:
    def test_cancelled_first_export_writes_no_index(self, destination):
        generator = FakeGenerator()
        assets = _assets()
        files = [source("a.md"), source("b.md"), source("c.md"), source("d.md")]

        _, result = _run(files, destination, generator, assets=assets, cancellation=CancelAfter(2))

        assert result.cancelled
        assert generator.calls == ["a.md", "b.md"]
        assert paths(result.write_set) == ["a.html", "b.html"]
        assert assets.calls == 0
        assert not (destination / INDEX_FILENAME).exists()

    def test_cancelled_export_leaves_index_byte_identical(self, destination):
        files = [source("a.md"), source("b.md")]
        _run(files, destination)
        before = (destination / INDEX_FILENAME).read_bytes()

        changed = [source("a.md", mtime=900.0), source("b.md", mtime=900.0)]
        _, result = _run(changed, destination, cancellation=CancelAfter(1))

        assert result.cancelled
        assert (destination / INDEX_FILENAME).read_bytes() == before
        index = ExportIndex.for_destination(destination)
        assert index.sources["a.md"].modified_time == 100.0

    def test_cancelled_session_does_not_call_writer(self, destination):
        calls = []
        _run(
            [source("a.md")],
            destination,
            cancellation=CancelAfter(0),
            writer=lambda result, dest: calls.append(result),
        )
        assert calls == []

    def test_cancelled_result_is_deduplicated(self, destination):
        shared = Artifact(relative_path="img/x.png", content=b"x")
        generator = FakeGenerator(dependencies={"a.md": [shared], "b.md": [shared]})
        _, result = _run([source("a.md"), source("b.md"), source("c.md")], destination, generator, cancellation=CancelAfter(2))
        assert paths(result.write_set) == ["img/x.png", "a.html", "b.html"]


# =============================================================================
# Progress
# =============================================================================


def test_progress_reports_each_file(destination):
    progress = RecordingProgress()
    _run([source("a.md"), source("b.md")], destination, progress=progress)

    assert progress.events[0] == (0, 2, "Exporting: a.md")
    assert progress.events[1] == (1, 2, "Exporting: b.md")
    assert progress.events[-1] == (2, 2, "Export complete")
