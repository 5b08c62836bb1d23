"""依赖解析编排单元测试（假拉取器，无网络）"""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from ven.core.cancel import CancelToken
from ven.core.exceptions import ConflictError, OperationCancelled, VcsError, VendorFsError
from ven.core.manifest import Manifest, Package
from ven.core.resolver import ImportOptions, Resolver
from ven.core.walker import ImportWalker

LIB = "github.com/a/lib"
DEP = "github.com/b/dep"
LEAF = "github.com/c/leaf"


@pytest.fixture()
def repos(fake_fetcher):
    fake_fetcher.add(LIB, {
        "lib.go": f'package lib\nimport "{LIB}/util"\n',
        "util/util.go": f'package util\nimport "{DEP}/sub"\n',
        "README.md": "docs",
        "lib_test.go": "package lib\n",
    }, tag="v1.0.0")
    fake_fetcher.add(DEP, {
        "dep.go": "package dep\n",
        "sub/sub.go": 'package sub\nimport "fmt"\n',
        "other/other.go": f'package other\nimport "{LEAF}"\n',
    })
    fake_fetcher.add(LEAF, {"leaf.go": "package leaf\n"})
    return fake_fetcher


def _resolver(manifest: Manifest, fetcher, cancel: CancelToken | None = None) -> Resolver:
    r = Resolver(manifest, fetcher, cancel=cancel)
    r.new_run()
    return r


class TestResolveNew:
    def test_transitive_closure(self, repos) -> None:
        m = Manifest()
        r = _resolver(m, repos)
        r.resolve(LIB, ImportOptions(fetch_all=True))

        assert repos.fetched_roots() == [LIB, DEP]
        lib = m.packages[LIB]
        assert lib.version == "v1.0.0"
        assert lib.commit_hash == "lib-head"
        assert lib.deps == {f"{DEP}/sub"}
        assert lib.subpackages == {f"{LIB}/util"}

        dep = m.packages[DEP]
        assert dep.version == ""
        assert dep.deps == set()
        assert dep.subpackages == {f"{DEP}/sub"}
        assert r.run.new_packages == [LIB, DEP]
        assert r.run.processed == {LIB, DEP}

    def test_fetched_tree_is_pruned(self, repos) -> None:
        r = _resolver(Manifest(), repos)
        r.resolve(LIB, ImportOptions(fetch_all=True))
        assert not Path("vendor", LIB, "README.md").exists()
        assert not Path("vendor", LIB, "lib_test.go").exists()
        assert Path("vendor", LIB, "lib.go").exists()

    def test_idempotent_second_run(self, repos, in_tmp) -> None:
        m = Manifest()
        _resolver(m, repos).resolve(LIB, ImportOptions(fetch_all=True))
        m.save("Manifest.yml")
        first = (in_tmp / "Manifest.yml").read_bytes()

        again = Manifest.load("Manifest.yml")
        r = _resolver(again, repos)
        r.resolve(LIB, ImportOptions(fetch_all=True))
        again.save("Manifest.yml")

        assert repos.fetched_roots() == [LIB, DEP]
        assert r.run.new_packages == []
        assert (in_tmp / "Manifest.yml").read_bytes() == first

    def test_subpackage_request_resolves_root(self, repos) -> None:
        m = Manifest()
        _resolver(m, repos).resolve(f"{DEP}/other", ImportOptions())
        assert repos.fetched_roots() == [DEP, LEAF]
        assert m.packages[DEP].subpackages == {f"{DEP}/other"}
        assert m.packages[DEP].deps == {LEAF}

    def test_fetch_failure_leaves_manifest_untouched(self, repos) -> None:
        repos.fail(DEP)
        m = Manifest()
        with pytest.raises(VcsError):
            _resolver(m, repos).resolve(LIB, ImportOptions(fetch_all=True))
        assert DEP not in m.packages


class TestConstraints:
    def test_hard_constraint_applied_and_required(self, repos) -> None:
        repos.add(LIB, {"lib.go": "package lib\n"}, version="v0.9.0", commit="old")
        m = Manifest(constraints={LIB: "v0.9.0"})
        _resolver(m, repos).resolve(LIB, ImportOptions(fetch_all=True))
        assert repos.calls[0] == (LIB, "v0.9.0", False, True)
        assert m.packages[LIB].version == "v0.9.0"
        assert m.packages[LIB].commit_hash == "old"

    def test_conflicting_request_raises(self, repos) -> None:
        m = Manifest(constraints={LIB: "v0.9.0"})
        with pytest.raises(ConflictError, match="v0.9.0"):
            _resolver(m, repos).resolve(LIB, ImportOptions(version="v2.0.0"))
        assert repos.calls == []
        assert m.packages == {}

    def test_foreign_lock_file_seeds_soft_constraint(self, repos) -> None:
        repos.add(LIB, {
            "lib.go": f'package lib\nimport "{DEP}/sub"\n',
            "glide.lock": f"imports:\n- name: {DEP}\n  version: abc123\n",
        }, version="v3")
        m = Manifest()
        r = _resolver(m, repos)
        r.resolve(LIB, ImportOptions(version="v3", fetch_all=True))
        assert r.run.cached_constraints == {DEP: "abc123"}
        assert (DEP, "abc123", False, False) in repos.calls
        assert not Path("vendor", LIB, "glide.lock").exists()

    def test_broken_lock_file_is_only_a_diagnostic(self, repos) -> None:
        repos.add(LIB, {
            "lib.go": "package lib\n",
            "Godeps/Godeps.json": "{not json",
        }, version="v4")
        m = Manifest()
        r = _resolver(m, repos)
        r.resolve(LIB, ImportOptions(version="v4", fetch_all=True))
        assert r.run.cached_constraints == {}
        assert LIB in m.packages


class TestExclusionAndLocal:
    def test_excluded_root_skipped_and_cached(self, repos) -> None:
        m = Manifest(exclude_packages={"github.com/b"})
        r = _resolver(m, repos)
        r.resolve(LIB, ImportOptions(fetch_all=True))
        assert repos.fetched_roots() == [LIB]
        assert r.run.cached_excluded == {"github.com/b"}
        assert DEP not in m.packages

    def test_local_prefix_marks_fetch_local(self, repos) -> None:
        m = Manifest(local_packages={"github.com/a"})
        _resolver(m, repos).resolve(LIB, ImportOptions(fetch_all=True))
        assert repos.calls[0] == (LIB, "", True, False)
        assert m.local_packages == {"github.com/a"}

    def test_local_request_recorded(self, repos) -> None:
        m = Manifest()
        _resolver(m, repos).resolve(LEAF, ImportOptions(local=True, fetch_all=True))
        assert m.local_packages == {LEAF}


class TestExistingPackages:
    def _populated(self, repos) -> Manifest:
        m = Manifest()
        _resolver(m, repos).resolve(LIB, ImportOptions(fetch_all=True))
        repos.calls.clear()
        return m

    def test_already_satisfied_without_update(self, repos) -> None:
        m = self._populated(repos)
        _resolver(m, repos).resolve(LIB, ImportOptions(fetch_all=True))
        assert repos.calls == []

    def test_same_version_with_update_is_noop(self, repos) -> None:
        m = self._populated(repos)
        _resolver(m, repos).resolve(LIB, ImportOptions(version="v1.0.0", update=True))
        assert repos.calls == []

    def test_imports_update_rescans_without_fetch(self, repos) -> None:
        m = self._populated(repos)
        r = _resolver(m, repos)
        r.resolve(DEP, ImportOptions(subpackages=[f"{DEP}/other"]))
        assert repos.fetched_roots() == [LEAF]
        assert m.packages[DEP].subpackages == {f"{DEP}/sub", f"{DEP}/other"}
        assert m.packages[DEP].deps == {LEAF}
        assert r.run.new_packages == [LEAF]

    def test_update_refetches_and_rescans(self, repos) -> None:
        m = self._populated(repos)
        repos.add(LIB, {
            "lib.go": f'package lib\nimport "{LIB}/util"\n',
            "util/util.go": f'package util\nimport "{LEAF}"\n',
        }, version="v2.0.0", commit="new")
        _resolver(m, repos).resolve(LIB, ImportOptions(version="v2.0.0", update=True))
        assert repos.fetched_roots() == [LIB, LEAF]
        lib = m.packages[LIB]
        assert (lib.version, lib.commit_hash) == ("v2.0.0", "new")
        assert lib.deps == {LEAF}
        assert lib.subpackages == {f"{LIB}/util"}

    def test_deprecated_subpackage_still_used_conflicts(self, repos) -> None:
        m = Manifest(packages={
            LIB: Package(LIB, "v1.0.0", "c1", subpackages={f"{LIB}/old"}),
            "github.com/x/user": Package("github.com/x/user", "", "c2", deps={f"{LIB}/old"}),
        })
        repos.add(LIB, {"lib.go": "package lib\n"}, version="v2.0.0", commit="c3")
        with pytest.raises(ConflictError, match="github.com/x/user") as exc:
            _resolver(m, repos).resolve(LIB, ImportOptions(version="v2.0.0", update=True))
        assert f"{LIB}/old" in str(exc.value)
        assert "commit c3, version: v2.0.0" in str(exc.value)
        assert m.packages[LIB].commit_hash == "c1"
        assert m.packages[LIB].subpackages == {f"{LIB}/old"}

    def test_deprecated_subpackage_unused_is_dropped(self, repos) -> None:
        m = Manifest(packages={
            LIB: Package(LIB, "v1.0.0", "c1", subpackages={f"{LIB}/old"}),
        })
        repos.add(LIB, {"lib.go": "package lib\n"}, version="v2.0.0", commit="c3")
        _resolver(m, repos).resolve(LIB, ImportOptions(version="v2.0.0", update=True))
        assert m.packages[LIB].subpackages == set()
        assert m.packages[LIB].commit_hash == "c3"

    def test_update_deps_propagates_to_children(self, repos) -> None:
        m = self._populated(repos)
        _resolver(m, repos).resolve(LIB, ImportOptions(update=True, update_deps=True))
        assert repos.fetched_roots() == [LIB, DEP]

    def test_update_alone_does_not_touch_children(self, repos) -> None:
        m = self._populated(repos)
        _resolver(m, repos).resolve(LIB, ImportOptions(update=True))
        assert repos.fetched_roots() == [LIB]


class TestCancellation:
    def test_cancelled_before_start(self, repos) -> None:
        token = CancelToken()
        token.cancel()
        with pytest.raises(OperationCancelled):
            _resolver(Manifest(), repos, cancel=token).resolve(LIB, ImportOptions())
        assert repos.calls == []


class _PruneFailsWalker(ImportWalker):
    def prune(self, root_dir) -> None:
        raise VendorFsError(f"过滤 {root_dir} 失败")


class TestFetchedTreeEdgeCases:
    def test_self_referencing_link_in_fetched_repo(self, repos) -> None:
        repos.link(LIB, "util/loop", ".")
        m = Manifest()
        _resolver(m, repos).resolve(LIB, ImportOptions(fetch_all=True))
        assert repos.fetched_roots() == [LIB, DEP]
        assert m.packages[LIB].deps == {f"{DEP}/sub"}
        assert m.packages[LIB].subpackages == {f"{LIB}/util"}
        assert not os.path.lexists(Path("vendor", LIB, "util", "loop"))

    def test_new_package_recorded_before_post_fetch_failure(self, repos) -> None:
        m = Manifest()
        r = Resolver(m, repos, walker=_PruneFailsWalker(m))
        r.new_run()
        with pytest.raises(VendorFsError):
            r.resolve(LIB, ImportOptions(fetch_all=True))
        assert r.run.new_packages == [LIB]
        assert LIB not in m.packages
