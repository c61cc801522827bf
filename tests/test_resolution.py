"""Tests for dependency resolution: traversal order, cycles, conflicts, package merging, retries."""

import asyncio

import pytest

from common.errors import (
    CyclicDependency,
    IncompatiblePackageVersions,
    InvalidManifest,
    RegistryNotFound,
    RegistryRateLimited,
    RegistryUnreachable,
)
from resolution import DependencyResolver, ManifestFetcher, PackageMerger
from versioning.models import ComponentRef


async def _no_sleep(_delay):
    return None


def _resolve(client, root="app", **kwargs):
    kwargs.setdefault("sleep", _no_sleep)
    return asyncio.run(DependencyResolver(client, **kwargs).resolve(ComponentRef(root)))


class TestTraversal:
    """Breadth-first discovery order and graph shape."""

    def test_diamond_is_shared_and_ordered(self, manifest, registry_factory):
        client = registry_factory([
            manifest("app", components=["card", "dialog"]),
            manifest("card", components=["button"]),
            manifest("dialog", components=["button", "overlay"]),
            manifest("button"),
            manifest("overlay"),
        ])
        result = _resolve(client)
        assert result.order == ("app", "card", "dialog", "button", "overlay")
        assert result.nodes["button"].depth == 2
        assert result.nodes["dialog"].children == ["button", "overlay"]
        assert [m.name for m in result.manifests()] == list(result.order)
        assert sum(1 for call in client.calls if call[0] == "button") == 1

    def test_order_is_independent_of_fetch_timing(self, manifest, registry_factory):
        manifests = [
            manifest("app", components=["a", "b", "c"]),
            manifest("a", components=["shared@1.0.0"]),
            manifest("b", components=["shared@2.0.0"]),
            manifest("c"),
            manifest("shared", "1.0.0"),
            manifest("shared", "2.0.0"),
        ]
        fast = _resolve(registry_factory(manifests))
        slow_first = _resolve(registry_factory(manifests, delays={"a": 0.02, "shared": 0.01}))
        assert fast.order == slow_first.order == ("app", "a", "b", "c", "shared")
        assert fast.to_dict() == slow_first.to_dict()
        assert fast.flattened_components["shared"].version == "1.0.0"

    def test_root_version_and_latest(self, manifest, registry_factory):
        client = registry_factory([manifest("app", "1.0.0"), manifest("app", "1.10.0"), manifest("app", "1.9.0")])
        assert _resolve(client).root.ref == ComponentRef("app", "1.10.0")
        pinned = asyncio.run(DependencyResolver(client).resolve(ComponentRef("app", "1.9.0")))
        assert pinned.root.ref.version == "1.9.0"


class TestCycles:
    """Cyclic dependencies are fatal and name the cycle."""

    def test_three_node_cycle(self, manifest, registry_factory):
        client = registry_factory([
            manifest("a", components=["b"]),
            manifest("b", components=["c"]),
            manifest("c", components=["a"]),
        ])
        with pytest.raises(CyclicDependency) as excinfo:
            _resolve(client, root="a")
        assert excinfo.value.cycle == ["a", "b", "c", "a"]

    def test_self_dependency(self, manifest, registry_factory):
        client = registry_factory([manifest("a", components=["a"])])
        with pytest.raises(CyclicDependency) as excinfo:
            _resolve(client, root="a")
        assert excinfo.value.cycle == ["a", "a"]

    def test_cycle_between_siblings(self, manifest, registry_factory):
        client = registry_factory([
            manifest("app", components=["b", "c"]),
            manifest("b", components=["c"]),
            manifest("c", components=["b"]),
        ])
        with pytest.raises(CyclicDependency) as excinfo:
            _resolve(client)
        assert excinfo.value.cycle in (["b", "c", "b"], ["c", "b", "c"])


class TestVersionConflicts:
    """First resolved version wins; later requests are recorded."""

    def test_conflict_is_recorded_not_fatal(self, manifest, registry_factory):
        client = registry_factory([
            manifest("app", components=["icon@1.0.0", "card"]),
            manifest("card", components=["icon@2.0.0"]),
            manifest("icon", "1.0.0"),
            manifest("icon", "2.0.0"),
        ])
        result = _resolve(client)
        assert result.flattened_components["icon"].version == "1.0.0"
        assert len(result.conflicts) == 1
        conflict = result.conflicts[0]
        assert (conflict.chosen, conflict.rejected, conflict.requested_by) == ("1.0.0", "2.0.0", "card")
        assert "kept 1.0.0" in str(conflict)
        assert ("icon", "2.0.0") not in client.calls

    def test_unversioned_request_does_not_conflict(self, manifest, registry_factory):
        client = registry_factory([
            manifest("app", components=["icon@1.0.0", "card"]),
            manifest("card", components=["icon"]),
            manifest("icon", "1.0.0"),
            manifest("icon", "2.0.0"),
        ])
        assert _resolve(client).conflicts == ()


class TestPackageMerging:
    """npm ranges across components."""

    def test_overlapping_ranges_merge(self, manifest, registry_factory):
        client = registry_factory([
            manifest("app", components=["card"], packages={"clsx": "^1.2.0", "react": "^18.0.0"}),
            manifest("card", packages={"clsx": "^1.3.0"}),
        ])
        result = _resolve(client)
        assert result.npm_packages == {"clsx": "^1.3.0", "react": "^18.0.0"}
        assert [r.component for r in result.package_requests["clsx"]] == ["app", "card"]

    def test_disjoint_ranges_fail(self, manifest, registry_factory):
        client = registry_factory([
            manifest("app", components=["card"], packages={"clsx": "^1.0.0"}),
            manifest("card", packages={"clsx": "^2.0.0"}),
        ])
        with pytest.raises(IncompatiblePackageVersions) as excinfo:
            _resolve(client)
        assert excinfo.value.first == ("app", "^1.0.0")
        assert excinfo.value.second == ("card", "^2.0.0")

    def test_disjoint_names_the_conflicting_requester(self):
        merger = PackageMerger()
        merger.add("react", "^18.0.0", "a")
        merger.add("react", "*", "b")
        with pytest.raises(IncompatiblePackageVersions) as excinfo:
            merger.add("react", "^17.0.0", "c")
        assert excinfo.value.first == ("a", "^18.0.0")

    def test_unparseable_ranges_first_wins_with_warning(self):
        merger = PackageMerger()
        merger.add("ui-kit", "workspace:*", "a")
        assert merger.add("ui-kit", "*", "b") == "workspace:*"
        assert merger.add("ui-kit", "github:acme/ui-kit", "c") == "workspace:*"
        assert merger.warnings and "ignoring 'github:acme/ui-kit'" in merger.warnings[0]
        merger.add("tag", "", "a")
        assert merger.add("tag", "next", "b") == "next"


class TestFetchRetries:
    """Retry policy of the manifest fetcher."""

    def test_transient_failures_are_retried(self, manifest, registry_factory):
        client = registry_factory(
            [manifest("app", components=["button"]), manifest("button")],
            failures={("button", "1.0.0"): [
                RegistryUnreachable("boom", status_code=503),
                RegistryRateLimited("slow", retry_after=2.0),
            ]},
        )
        delays = []

        async def record(delay):
            delays.append(delay)

        result = _resolve(client, sleep=record)
        assert "button" in result.nodes
        assert len(delays) == 2
        assert delays[1] == 2.0

    def test_long_rate_limit_hint_is_waited_in_full(self, manifest, registry_factory):
        client = registry_factory(
            [manifest("app")],
            failures={("app", "1.0.0"): [RegistryRateLimited("slow", retry_after=120.0)]},
        )
        delays = []

        async def record(delay):
            delays.append(delay)

        _resolve(client, sleep=record)
        assert delays == [120.0]

    def test_rate_limit_beyond_budget_surfaces(self, manifest, registry_factory):
        client = registry_factory(
            [manifest("app")],
            failures={("app", "1.0.0"): [RegistryRateLimited("slow", retry_after=3600.0)]},
        )
        delays = []

        async def record(delay):
            delays.append(delay)

        with pytest.raises(RegistryRateLimited) as excinfo:
            _resolve(client, sleep=record)
        assert excinfo.value.retry_after == 3600.0
        assert delays == []
        assert len(client.calls) == 1

    def test_gives_up_after_max_attempts(self, manifest, registry_factory):
        client = registry_factory(
            [manifest("app")],
            failures={("app", "1.0.0"): [RegistryUnreachable("down")] * 5},
        )
        with pytest.raises(RegistryUnreachable):
            _resolve(client, max_attempts=3)
        assert len(client.calls) == 3

    def test_fatal_errors_are_not_retried(self, manifest, registry_factory):
        client = registry_factory(
            [manifest("app", components=["missing", "broken"]), manifest("broken")],
            failures={("broken", "1.0.0"): [InvalidManifest("bad")]},
        )
        with pytest.raises(RegistryNotFound):
            _resolve(client)
        assert client.calls.count(("missing", None)) == 1

    def test_non_retriable_unreachable(self, manifest, registry_factory):
        client = registry_factory(
            [manifest("app")],
            failures={("app", "1.0.0"): [RegistryUnreachable("bad request", status_code=400, retriable=False)]},
        )
        with pytest.raises(RegistryUnreachable):
            _resolve(client)
        assert len(client.calls) == 1

    def test_fetcher_memoises_concurrent_requests(self, manifest, registry_factory):
        client = registry_factory([manifest("button")], delays={"button": 0.01})

        async def go():
            fetcher = ManifestFetcher(client)
            first, second = await asyncio.gather(
                fetcher.fetch(ComponentRef("button", "1.0.0")),
                fetcher.fetch(ComponentRef("button", "1.0.0")),
            )
            return fetcher, first, second

        fetcher, first, second = asyncio.run(go())
        assert first is second
        assert fetcher.attempts == 1
