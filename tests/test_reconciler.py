"""
Tests for the tree reconciler — hardlinking, pruning, progress, and status.
"""

from __future__ import annotations

import errno
import logging
import os
import threading
from pathlib import Path

import pytest

from polyglot.mirror.classifier import PathClassifier
from polyglot.mirror.reconciler import TreeReconciler
from polyglot.models.config import LibraryMirror, SyncStatus
from polyglot.persistence.audit import MemorySink
from polyglot.validation import SyncCancelled

from tests.helpers import listing, write


@pytest.fixture
def source(tmp_path: Path) -> Path:
    root = tmp_path / "source"
    root.mkdir()
    return root


@pytest.fixture
def target(tmp_path: Path) -> Path:
    return tmp_path / "target"


@pytest.fixture
def mirror(target: Path) -> LibraryMirror:
    return LibraryMirror(source_library_id="lib-1", target_path=str(target), target_library_name="Films (PT)")


@pytest.fixture
def reconciler() -> TreeReconciler:
    return TreeReconciler(PathClassifier(), sink=MemorySink())


def sync(reconciler, mirror, *roots, **kwargs):
    return reconciler.synchronize(mirror, [str(r) for r in roots], **kwargs)


class TestFiltering:
    """Which files reach the mirror."""

    def test_only_media_is_mirrored(self, reconciler, mirror, source, target):
        write(source / "movie.mkv", "video-bytes")
        write(source / "movie.nfo", "<movie/>")
        write(source / "poster.jpg", "jpeg")

        outcome = sync(reconciler, mirror, source)

        assert outcome.ok
        assert listing(target) == {"movie.mkv"}
        assert (target / "movie.mkv").read_text() == "video-bytes"

    def test_excluded_directories_never_created(self, reconciler, mirror, source, target):
        write(source / ".trickplay" / "data.bif")
        write(source / "extrafanart" / "art.jpg")
        write(source / "movie.mkv")

        sync(reconciler, mirror, source)

        assert listing(target) == {"movie.mkv"}

    def test_excluded_directory_with_media_inside(self, reconciler, mirror, source, target):
        write(source / "Film" / "metadata" / "clip.mkv")
        write(source / "Film" / "film.mkv")

        sync(reconciler, mirror, source)

        assert listing(target) == {"Film", "Film/film.mkv"}

    def test_nested_structure_reproduced(self, reconciler, mirror, source, target):
        write(source / "Show" / "Season 1" / "S01E01.mkv")
        write(source / "Show" / "Season 1" / "S01E01.nfo")
        write(source / "Show" / "Season 1" / "S01E01.srt")
        write(source / "Show" / "Season 2" / "folder.jpg")

        sync(reconciler, mirror, source)

        assert listing(target) == {
            "Show",
            "Show/Season 1",
            "Show/Season 1/S01E01.mkv",
            "Show/Season 1/S01E01.srt",
        }

    def test_custom_exclusions(self, mirror, source, target):
        write(source / "movie.mkv")
        write(source / "movie.srt")
        write(source / "poster.jpg")

        reconciler = TreeReconciler(PathClassifier(excluded_extensions=[".srt"]))
        sync(reconciler, mirror, source)

        assert listing(target) == {"movie.mkv", "poster.jpg"}

    def test_symlinks_are_skipped(self, reconciler, mirror, source, target, tmp_path):
        elsewhere = write(tmp_path / "elsewhere" / "other.mkv")
        write(source / "movie.mkv")
        os.symlink(elsewhere, source / "link.mkv")

        sync(reconciler, mirror, source)

        assert listing(target) == {"movie.mkv"}


class TestHardlinks:
    """Mirror entries share storage with the source."""

    def test_target_is_hardlink(self, reconciler, mirror, source, target):
        src = write(source / "movie.mkv", "video")

        sync(reconciler, mirror, source)

        assert os.stat(target / "movie.mkv").st_ino == os.stat(src).st_ino
        assert src.read_text() == "video"

    def test_second_run_is_noop(self, reconciler, mirror, source, target):
        write(source / "a.mkv")
        write(source / "b.mkv")
        sync(reconciler, mirror, source)

        outcome = sync(reconciler, mirror, source)

        assert outcome.files_linked == 0
        assert outcome.files_unchanged == 2
        assert outcome.files_removed == 0

    def test_replaced_source_is_relinked(self, reconciler, mirror, source, target):
        src = write(source / "movie.mkv", "original")
        sync(reconciler, mirror, source)

        src.unlink()
        write(src, "remastered edition")
        outcome = sync(reconciler, mirror, source)

        assert outcome.files_updated == 1
        assert (target / "movie.mkv").read_text() == "remastered edition"
        assert os.stat(target / "movie.mkv").st_ino == os.stat(src).st_ino

    def test_touch_only_leaves_mirror_in_place(self, reconciler, mirror, source, target):
        src = write(source / "movie.mkv", "video")
        sync(reconciler, mirror, source)

        stamp = os.stat(src).st_mtime + 3600
        os.utime(src, (stamp, stamp))
        outcome = sync(reconciler, mirror, source)

        assert outcome.files_unchanged == 1
        assert (target / "movie.mkv").read_text() == "video"

    def test_stale_copy_in_target_is_replaced(self, reconciler, mirror, source, target):
        src = write(source / "movie.mkv", "new content")
        write(target / "movie.mkv", "old")

        outcome = sync(reconciler, mirror, source)

        assert outcome.files_updated == 1
        assert os.stat(target / "movie.mkv").st_ino == os.stat(src).st_ino

    def test_directory_in_place_of_file_is_replaced(self, reconciler, mirror, source, target):
        write(source / "movie.mkv", "video")
        write(target / "movie.mkv" / "junk.mkv")

        outcome = sync(reconciler, mirror, source)

        assert outcome.files_updated == 1
        assert (target / "movie.mkv").is_file()


class TestPruning:
    """Removal of mirror entries without a source."""

    def test_deleted_source_file_removed(self, reconciler, mirror, source, target):
        keep = write(source / "Film A" / "a.mkv")
        gone = write(source / "Film B" / "b.mkv")
        sync(reconciler, mirror, source)
        assert (target / "Film B" / "b.mkv").exists()

        gone.unlink()
        outcome = sync(reconciler, mirror, source)

        assert outcome.files_removed == 1
        assert not (target / "Film B" / "b.mkv").exists()
        assert not (target / "Film B").exists()
        assert (target / "Film A" / "a.mkv").exists()
        assert keep.exists()

    def test_localized_metadata_in_target_survives(self, reconciler, mirror, source, target):
        write(source / "movie.mkv")
        write(target / "movie.nfo", "<movie lang='pt'/>")
        write(target / "poster.jpg", "pt-poster")

        sync(reconciler, mirror, source)

        assert (target / "movie.nfo").read_text() == "<movie lang='pt'/>"
        assert (target / "poster.jpg").exists()

    def test_host_owned_directories_survive(self, reconciler, mirror, source, target):
        write(source / "movie.mkv")
        write(target / ".trickplay" / "320" / "0.jpg")

        sync(reconciler, mirror, source)

        assert (target / ".trickplay" / "320" / "0.jpg").exists()

    def test_stray_media_and_empty_dirs_removed(self, reconciler, mirror, source, target):
        write(source / "movie.mkv")
        write(target / "Old Film" / "old.mkv")

        outcome = sync(reconciler, mirror, source)

        assert listing(target) == {"movie.mkv"}
        assert outcome.files_removed == 1
        assert outcome.dirs_removed == 1

    def test_empty_host_directories_survive(self, reconciler, mirror, source, target):
        write(source / "movie.mkv")
        (target / "Collections" / "Box Sets").mkdir(parents=True)

        outcome = sync(reconciler, mirror, source)

        assert (target / "Collections" / "Box Sets").is_dir()
        assert outcome.dirs_removed == 0


class TestNewlyExcluded:
    """Links made before an exclusion was added are taken back out."""

    def test_excluded_extension_link_removed(self, mirror, source, target):
        write(source / "movie.mkv")
        write(source / "movie.srt")
        sync(TreeReconciler(PathClassifier(excluded_extensions=[])), mirror, source)
        assert (target / "movie.srt").exists()

        outcome = sync(TreeReconciler(PathClassifier(excluded_extensions=[".srt"])), mirror, source)

        assert listing(target) == {"movie.mkv"}
        assert outcome.files_removed == 1
        assert (source / "movie.srt").exists()

    def test_host_written_file_with_excluded_extension_survives(self, mirror, source, target):
        write(source / "movie.mkv")
        write(source / "movie.srt", "english")
        sync(TreeReconciler(PathClassifier(excluded_extensions=[])), mirror, source)
        (target / "movie.srt").unlink()
        write(target / "movie.srt", "legendas")

        sync(TreeReconciler(PathClassifier(excluded_extensions=[".srt"])), mirror, source)

        assert (target / "movie.srt").read_text() == "legendas"
        assert (source / "movie.srt").read_text() == "english"

    def test_links_in_excluded_directory_removed(self, mirror, source, target):
        write(source / "Film" / "film.mkv")
        write(source / "Film" / "extras" / "bts.mkv")
        sync(TreeReconciler(PathClassifier(excluded_directories=[])), mirror, source)
        assert (target / "Film" / "extras" / "bts.mkv").exists()

        outcome = sync(TreeReconciler(PathClassifier(excluded_directories=["extras"])), mirror, source)

        assert listing(target) == {"Film", "Film/film.mkv"}
        assert outcome.files_removed == 1
        assert outcome.dirs_removed == 1

    def test_excluded_directory_keeps_host_files(self, mirror, source, target):
        write(source / "Film" / "film.mkv")
        write(source / "Film" / "extras" / "bts.mkv")
        sync(TreeReconciler(PathClassifier(excluded_directories=[])), mirror, source)
        write(target / "Film" / "extras" / "bts.nfo", "<movie lang='pt'/>")

        sync(TreeReconciler(PathClassifier(excluded_directories=["extras"])), mirror, source)

        assert listing(target) == {"Film", "Film/film.mkv", "Film/extras", "Film/extras/bts.nfo"}

    def test_deleted_source_after_exclusion(self, mirror, source, target):
        write(source / "Film" / "film.mkv")
        bts = write(source / "Film" / "extras" / "bts.mkv")
        excluding = TreeReconciler(PathClassifier(excluded_directories=["extras"]))
        sync(TreeReconciler(PathClassifier(excluded_directories=[])), mirror, source)
        sync(excluding, mirror, source)

        bts.unlink()
        sync(excluding, mirror, source)

        assert not (target / "Film" / "extras").exists()
        assert (target / "Film" / "film.mkv").exists()

    def test_link_to_moved_source_removed(self, mirror, source, target, tmp_path):
        write(source / "Film" / "film.mkv")
        bts = write(source / "Film" / "extras" / "bts.mkv")
        sync(TreeReconciler(PathClassifier(excluded_directories=[])), mirror, source)
        bts.rename(tmp_path / "bts.mkv")

        outcome = sync(TreeReconciler(PathClassifier(excluded_directories=["extras"])), mirror, source)

        assert not (target / "Film" / "extras" / "bts.mkv").exists()
        assert outcome.files_removed == 1
        assert (tmp_path / "bts.mkv").exists()


class TestPerFileErrors:
    """A file that cannot be linked does not stop the run."""

    def test_link_failure_skipped(self, reconciler, mirror, source, target, monkeypatch):
        write(source / "a.mkv")
        write(source / "b.mkv")
        real_link = os.link

        def link(src, dst, *args, **kwargs):
            if os.path.basename(src) == "a.mkv":
                raise PermissionError(errno.EACCES, "Permission denied", str(dst))
            return real_link(src, dst, *args, **kwargs)

        monkeypatch.setattr(os, "link", link)

        outcome = sync(reconciler, mirror, source)

        assert outcome.files_failed == 1
        assert outcome.files_linked == 1
        assert listing(target) == {"b.mkv"}
        assert mirror.status == SyncStatus.SYNCED
        assert mirror.last_sync_file_count == 1


class TestMultipleLocations:
    """Libraries with more than one folder."""

    def test_locations_merge_into_one_target(self, reconciler, mirror, tmp_path, target):
        first = tmp_path / "disk1"
        second = tmp_path / "disk2"
        write(first / "a.mkv")
        write(second / "b.mkv")

        outcome = sync(reconciler, mirror, first, second)

        assert outcome.ok
        assert listing(target) == {"a.mkv", "b.mkv"}

    def test_duplicate_relative_path_keeps_first(self, reconciler, mirror, tmp_path, target):
        first = tmp_path / "disk1"
        second = tmp_path / "disk2"
        src = write(first / "movie.mkv", "first")
        write(second / "movie.mkv", "second")

        outcome = sync(reconciler, mirror, first, second)

        assert outcome.files_total == 1
        assert os.stat(target / "movie.mkv").st_ino == os.stat(src).st_ino


class TestProgress:
    """Progress callback behaviour."""

    def test_one_value_per_file_ending_at_100(self, reconciler, mirror, source):
        for name in ("a.mkv", "b.mkv", "c.mkv"):
            write(source / name)
        write(source / "a.nfo")
        values = []

        sync(reconciler, mirror, source, progress=values.append)

        assert len(values) == 3
        assert values == sorted(values)
        assert values[-1] == 100.0

    def test_zero_files_reports_single_100(self, reconciler, mirror, source):
        write(source / "movie.nfo")
        values = []

        sync(reconciler, mirror, source, progress=values.append)

        assert values == [100.0]


class TestStatus:
    """Mirror status transitions and audit events."""

    def test_success_marks_synced(self, reconciler, mirror, source):
        write(source / "a.mkv")
        write(source / "b.mkv")
        write(source / "b.nfo")

        outcome = sync(reconciler, mirror, source)

        assert mirror.status == SyncStatus.SYNCED
        assert mirror.last_sync_file_count == 2 == outcome.files_mirrored
        assert mirror.last_synced_at is not None
        assert mirror.last_error is None

    def test_missing_source_root_marks_error(self, reconciler, mirror, tmp_path):
        outcome = sync(reconciler, mirror, tmp_path / "missing")

        assert not outcome.ok
        assert mirror.status == SyncStatus.ERROR
        assert "does not exist" in mirror.last_error
        assert reconciler.sink.of_type("sync_failed")

    def test_no_locations_marks_error(self, reconciler, mirror):
        outcome = reconciler.synchronize(mirror, [])

        assert not outcome.ok
        assert mirror.status == SyncStatus.ERROR

    def test_error_cleared_by_next_success(self, reconciler, mirror, source, tmp_path):
        sync(reconciler, mirror, tmp_path / "missing")
        write(source / "a.mkv")

        sync(reconciler, mirror, source)

        assert mirror.status == SyncStatus.SYNCED
        assert mirror.last_error is None

    def test_cancellation_marks_error_and_raises(self, reconciler, mirror, source):
        write(source / "a.mkv")
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(SyncCancelled):
            sync(reconciler, mirror, source, cancel=cancel)

        assert mirror.status == SyncStatus.ERROR
        assert mirror.last_error == "Synchronization cancelled"

    def test_audit_events(self, reconciler, mirror, source):
        write(source / "a.mkv")

        sync(reconciler, mirror, source)

        types = [e["type"] for e in reconciler.sink.events]
        assert types == ["sync_start", "sync_end"]
        assert reconciler.sink.events[1]["details"]["files_linked"] == 1

    def test_log_records_carry_mirror_id(self, reconciler, mirror, source, caplog):
        write(source / "a.mkv")

        with caplog.at_level(logging.INFO, logger="polyglot.mirror.reconciler"):
            sync(reconciler, mirror, source)

        tagged = [r for r in caplog.records if getattr(r, "mirror_id", None) == mirror.id]
        assert len(tagged) == 2
