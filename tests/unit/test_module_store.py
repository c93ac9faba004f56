#!/usr/bin/env python3
"""
Tests for module loading, hint selection and release bookkeeping.
"""

import pytest

from jobresolve.analysis.module_system import ModuleStore, PathResolver, loads_module
from jobresolve.shared.errors import JobResolveError, LoadError, SynthesisError
from tests.test_utils import CountingModuleStore, DEMO_MODULE, write_corpus


class TestPathResolver:

    def test_resolve_by_name(self, corpus_dir):
        resolver = PathResolver([corpus_dir])
        assert resolver.resolve("Demo") == corpus_dir / "Demo.jmod"
        assert resolver.resolve("Missing") is None

    def test_select_include(self, corpus_dir):
        selected = PathResolver([corpus_dir]).select(["Dem", "Out"])
        assert [p.stem for p in selected] == ["Demo", "Out"]

    def test_select_exclude(self, corpus_dir):
        selected = PathResolver([corpus_dir]).select(["Dem", "Out"], exclude=True)
        assert [p.stem for p in selected] == ["Core"]

    def test_missing_search_path_is_ignored(self, tmp_path, corpus_dir):
        resolver = PathResolver([tmp_path / "nowhere", corpus_dir])
        assert [p.stem for p in resolver.module_files()] == ["Core", "Demo", "Out"]

    def test_non_module_files_are_ignored(self, corpus_dir):
        (corpus_dir / "notes.txt").write_text("not a module", encoding="utf-8")
        assert [p.stem for p in PathResolver([corpus_dir]).module_files()] == ["Core", "Demo", "Out"]


class TestModuleStore:

    def test_add_module_dedupes_by_path(self, corpus_paths):
        with ModuleStore() as store:
            first = store.add_module(corpus_paths["Demo"])
            second = store.add_module(corpus_paths["Demo"].parent / "." / "Demo.jmod")
            assert first is second
            assert store.open_count == 1

    def test_required_failure_raises(self, tmp_path):
        with ModuleStore() as store:
            with pytest.raises(LoadError):
                store.add_module(tmp_path / "Missing.jmod")

    def test_optional_failure_is_reported(self, tmp_path):
        with ModuleStore() as store:
            assert store.add_module(tmp_path / "Missing.jmod", required=False) is None
            assert [d.code for d in store.reporter.diagnostics] == ["L0001"]

    def test_select_skips_broken_modules(self, tmp_path):
        write_corpus(tmp_path, {"DemoA": DEMO_MODULE, "DemoB": "(module"})
        with ModuleStore([tmp_path]) as store:
            loaded = store.select(["Demo"])
            assert [m.name for m in loaded] == ["Demo"]
            assert len(store.reporter.with_code("L0001")) == 1

    def test_select_with_nothing_loadable(self, tmp_path):
        write_corpus(tmp_path, {"DemoB": "(module"})
        with ModuleStore([tmp_path]) as store:
            with pytest.raises(LoadError):
                store.select(["Demo"])

    def test_select_matching_nothing(self, corpus_dir):
        with ModuleStore([corpus_dir]) as store:
            assert store.select(["Nothing"]) == []

    def test_resolve_additional_loads_references(self, corpus_paths, corpus_dir):
        with ModuleStore([corpus_dir], resolve_additional=True) as store:
            store.add_module(corpus_paths["Demo"])
            assert [m.name for m in store.modules] == ["Demo", "Core"]

    def test_get_by_name(self, store):
        assert store.get("Core").name == "Core"
        assert store.get("Out") is None

    def test_close_releases_everything(self, corpus_dir):
        store = CountingModuleStore([corpus_dir])
        with store:
            modules = store.select(["Core", "Demo", "Out"])
        assert store.closed
        assert store.modules == []
        assert sorted(store.opened) == sorted(store.released) == ["Core", "Demo", "Out"]
        assert store.open_count == store.release_count == 3
        assert all(m.released and m.types == [] for m in modules)

    def test_close_is_idempotent(self, corpus_dir):
        store = ModuleStore([corpus_dir])
        store.select(["Demo"])
        store.close()
        store.close()
        assert store.release_count == 1

    def test_closed_store_rejects_loads(self, corpus_paths):
        store = ModuleStore()
        store.close()
        with pytest.raises(JobResolveError):
            store.add_module(corpus_paths["Demo"])

    def test_write_failure_becomes_synthesis_error(self, corpus_paths):
        with CountingModuleStore(fail_on_write=True) as store:
            module = store.add_module(corpus_paths["Out"])
            with pytest.raises(SynthesisError):
                store.write(module)

    def test_write_in_memory_module_without_path(self):
        with ModuleStore() as store:
            with pytest.raises(SynthesisError):
                store.write(loads_module(DEMO_MODULE))
