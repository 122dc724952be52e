"""
Tests for live file watching: the change handler, event routing and the
single-active-watcher manager.
"""

import time
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from watchdog.events import DirModifiedEvent, FileCreatedEvent

from kindex.exceptions import WatcherError
from kindex.filters import build_filter_chain
from kindex.ingest import ChunkSizing, LocalFileContentExtractor, ResourceContentProcessor
from kindex.watching import FileChangeHandler, FileWatcher, WatcherManager, get_watcher_manager


def write(path: Path, content: str) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content)
    return path


@pytest.fixture
def chain(test_config):
    return build_filter_chain(test_config)


@pytest.fixture
def handler(embedder, vector_store, keyword_store, state_store, chain):
    return FileChangeHandler(
        project_id="test-project",
        source_kind="folders",
        processor=ResourceContentProcessor(LocalFileContentExtractor(), ChunkSizing(500, 50)),
        embedder=embedder,
        vector_store=vector_store,
        keyword_store=keyword_store,
        state_store=state_store,
        chain=chain,
        batch_size=3,
    )


class TestFileChangeHandler:
    """Tests for applying single events to the index."""

    def test_upsert_new_file(self, handler, source_dir, state_store, vector_store):
        a = write(source_dir / "a.md", "alpha")

        assert handler.on_upsert(str(a))

        assert state_store.get_record("folders", str(a)) is not None
        assert set(vector_store.segments) == set(state_store.get_segment_ids("folders", str(a)))

    def test_unchanged_file_is_skipped(self, handler, source_dir, embedder):
        a = write(source_dir / "a.md", "alpha")
        handler.on_upsert(str(a))
        calls = embedder.batch_calls

        assert handler.on_upsert(str(a))

        assert embedder.batch_calls == calls

    def test_modified_file_replaces_segments(self, handler, source_dir, state_store, vector_store):
        a = write(source_dir / "a.md", "alpha")
        handler.on_upsert(str(a))
        old_ids = set(vector_store.segments)

        write(a, "alpha and omega")
        assert handler.on_upsert(str(a))

        new_ids = set(state_store.get_segment_ids("folders", str(a)))
        assert new_ids and set(vector_store.segments) == new_ids
        assert not (old_ids & new_ids)

    def test_missing_file(self, handler, source_dir):
        assert not handler.on_upsert(str(source_dir / "gone.md"))

    def test_delete_file(self, handler, source_dir, state_store, vector_store, keyword_store):
        a = write(source_dir / "a.md", "alpha")
        handler.on_upsert(str(a))
        a.unlink()

        assert handler.on_delete(str(a)) == 1

        assert state_store.get_record("folders", str(a)) is None
        assert vector_store.segments == {}
        assert keyword_store.texts == {}

    def test_delete_directory(self, handler, source_dir, state_store, vector_store):
        keep = write(source_dir / "keep.md", "keep")
        inner = [write(source_dir / "pkg" / name, name) for name in ("a.md", "b.md")]
        for path in [keep, *inner]:
            handler.on_upsert(str(path))

        assert handler.on_delete(str(source_dir / "pkg")) == 2

        assert set(state_store.load_previous_state("folders")) == {str(keep)}
        assert vector_store.ids_for(str(keep).replace("\\", "/"))

    def test_new_directory_respects_filters(self, handler, source_dir, state_store):
        write(source_dir / ".gitignore", "*.gen.md\n")
        write(source_dir / "new" / "a.md", "a")
        write(source_dir / "new" / "b.gen.md", "b")

        assert handler.on_directory_created(str(source_dir / "new"), str(source_dir)) == 1

        assert set(state_store.load_previous_state("folders")) == {str(source_dir / "new" / "a.md")}

    def test_move_file(self, handler, source_dir, state_store):
        src = write(source_dir / "old.md", "content")
        handler.on_upsert(str(src))
        dest = source_dir / "new.md"
        src.rename(dest)

        handler.on_moved(str(src), str(dest), str(source_dir), False)

        assert set(state_store.load_previous_state("folders")) == {str(dest)}

    def test_move_into_ignored_location(self, handler, source_dir, state_store):
        write(source_dir / ".gitignore", "trash/\n")
        src = write(source_dir / "old.md", "content")
        handler.on_upsert(str(src))
        dest = source_dir / "trash" / "old.md"
        dest.parent.mkdir(parents=True, exist_ok=True)
        src.rename(dest)

        handler.on_moved(str(src), str(dest), str(source_dir), False)

        assert state_store.load_previous_state("folders") == {}


class TestFileWatcherEvents:
    """Tests for routing events to the handler."""

    @pytest.fixture
    def mock_handler(self):
        return MagicMock(spec=FileChangeHandler)

    def test_created_file(self, mock_handler, chain, source_dir):
        a = write(source_dir / "a.md", "a")
        watcher = FileWatcher([str(source_dir)], mock_handler, chain)

        watcher.process_event("created", False, str(a), None, str(source_dir))

        mock_handler.on_upsert.assert_called_once_with(str(a))

    def test_excluded_file_is_ignored(self, mock_handler, chain, source_dir):
        write(source_dir / ".gitignore", "skip.md\n")
        skipped = write(source_dir / "skip.md", "s")
        image = write(source_dir / "img.png", "p")
        watcher = FileWatcher([str(source_dir)], mock_handler, chain)

        watcher.process_event("modified", False, str(skipped), None, str(source_dir))
        watcher.process_event("created", False, str(image), None, str(source_dir))

        mock_handler.on_upsert.assert_not_called()

    def test_deleted_and_moved(self, mock_handler, chain, source_dir):
        watcher = FileWatcher([str(source_dir)], mock_handler, chain)
        src = str(source_dir / "a.md")
        dest = str(source_dir / "b.md")

        watcher.process_event("deleted", False, src, None, str(source_dir))
        watcher.process_event("moved", False, src, dest, str(source_dir))

        mock_handler.on_delete.assert_called_once_with(src)
        mock_handler.on_moved.assert_called_once_with(src, dest, str(source_dir), False)

    def test_created_directory(self, mock_handler, chain, source_dir):
        new_dir = source_dir / "pkg"
        new_dir.mkdir()
        watcher = FileWatcher([str(source_dir)], mock_handler, chain)

        watcher.process_event("created", True, str(new_dir), None, str(source_dir))

        mock_handler.on_directory_created.assert_called_once_with(str(new_dir), str(source_dir))

    def test_gitignore_change_invalidates_chain(self, mock_handler, chain, source_dir):
        gitignore = write(source_dir / ".gitignore", "a.md\n")
        chain.invalidate = MagicMock()
        watcher = FileWatcher([str(source_dir)], mock_handler, chain)

        watcher.process_event("modified", False, str(gitignore), None, str(source_dir))

        chain.invalidate.assert_called_once()
        mock_handler.on_upsert.assert_not_called()

    def test_root_for_prefers_deepest_root(self, mock_handler, chain, temp_dir):
        outer = temp_dir / "outer"
        inner = outer / "inner"
        inner.mkdir(parents=True)
        watcher = FileWatcher([str(outer), str(inner)], mock_handler, chain)

        assert watcher.root_for(str(inner / "a.md")) == str(inner)
        assert watcher.root_for(str(outer / "a.md")) == str(outer)
        assert watcher.root_for("/somewhere/else.md") is None

    def test_dispatch_before_start_is_dropped(self, mock_handler, chain, source_dir):
        watcher = FileWatcher([str(source_dir)], mock_handler, chain)

        watcher.dispatch("created", FileCreatedEvent(str(source_dir / "a.md")))
        watcher.dispatch("modified", DirModifiedEvent(str(source_dir)))

        mock_handler.on_upsert.assert_not_called()

    def test_start_without_directories(self, mock_handler, chain, temp_dir):
        watcher = FileWatcher([str(temp_dir / "missing")], mock_handler, chain)

        with pytest.raises(WatcherError):
            watcher.start()
        assert not watcher.running

    def test_live_events_reach_the_index(self, handler, chain, source_dir, state_store):
        watcher = FileWatcher([str(source_dir)], handler, chain)
        watcher.start()
        try:
            a = write(source_dir / "live.md", "live content")
            deadline = time.time() + 10
            while time.time() < deadline and state_store.get_record("folders", str(a)) is None:
                time.sleep(0.1)

            assert state_store.get_record("folders", str(a)) is not None
        finally:
            watcher.stop()

        assert not watcher.running


class TestWatcherManager:
    """Tests for the single active watcher."""

    def test_starting_a_second_watcher_stops_the_first(self):
        manager = WatcherManager()
        first, second = MagicMock(), MagicMock()

        manager.start(first)
        manager.start(second)

        first.start.assert_called_once()
        first.stop.assert_called_once()
        second.start.assert_called_once()
        assert manager.active is second

    def test_restarting_the_same_watcher(self):
        manager = WatcherManager()
        watcher = MagicMock()

        manager.start(watcher)
        manager.start(watcher)

        watcher.stop.assert_not_called()

    def test_stop_if_only_stops_active(self):
        manager = WatcherManager()
        first, second = MagicMock(), MagicMock()
        manager.start(first)
        manager.start(second)

        manager.stop_if(first)
        assert manager.active is second

        manager.stop_if(second)
        second.stop.assert_called_once()
        assert manager.active is None

    def test_stop(self):
        manager = WatcherManager()
        watcher = MagicMock()
        manager.start(watcher)

        manager.stop()

        watcher.stop.assert_called_once()
        assert manager.active is None

    def test_process_wide_manager(self):
        assert get_watcher_manager() is get_watcher_manager()
