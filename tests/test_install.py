"""Tests for atomic installation: staging, conflicts, promotion, rollback and package reconciliation."""

import asyncio
import json
import os
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from common.errors import FileConflict, PromotionFailure, StagingFailure, TargetCollision, TransformFailed
from constants import ExitCodes
from install import (
    InstallOptions,
    InstallOrchestrator,
    InstallTransaction,
    merge_package_versions,
    read_project_dependencies,
    sweep_stale_temp_files,
)
from resolution import DependencyResolver
from transform import StyleStrategy, TransformContext
from versioning.models import ComponentRef

APP_INDEX = 'import { Card } from "card";\nimport "./app.css";\nexport const App = () => null;\n'


def _files(root):
    return sorted(p.relative_to(root).as_posix() for p in Path(root).rglob("*") if p.is_file())


@pytest.fixture
def resolved(manifest, registry_factory):
    """Resolution of ``app`` (3 files) depending on ``card`` (2 files)."""

    def build(app_files=None, card_files=None):
        client = registry_factory([
            manifest(
                "app",
                files=app_files or {
                    "index.tsx": APP_INDEX,
                    "app.css": ".app {}\n",
                    "utils.ts": "export const noop = () => {};\n",
                },
                components=["card"],
                packages={"clsx": "^2.0.0", "react": "^18.2.0"},
            ),
            manifest(
                "card",
                files=card_files or {"index.tsx": "export const Card = 1;\n", "card.css": ".card {}\n"},
                packages={"react": "^18.0.0"},
            ),
        ])
        return asyncio.run(DependencyResolver(client).resolve(ComponentRef("app")))

    return build


def _install(result, root, context=None, **options):
    orchestrator = InstallOrchestrator()
    return asyncio.run(
        orchestrator.install(result, context or TransformContext(), InstallOptions(target_dir=root, **options))
    )


EXPECTED = [
    "components/app/app.css",
    "components/app/index.tsx",
    "components/app/utils.ts",
    "components/card/card.css",
    "components/card/index.tsx",
]


class TestInstallOrchestrator:
    """End-to-end install of a resolution result."""

    def test_installs_transformed_files(self, resolved, tmp_path):
        (tmp_path / "package.json").write_text(json.dumps({"dependencies": {"react": "^18.3.0"}}))
        report = _install(resolved(), tmp_path)
        assert _files(tmp_path) == sorted(EXPECTED + ["package.json"])
        assert (tmp_path / "components/app/index.tsx").read_text() == APP_INDEX.replace('"card"', '"../card"')
        assert sorted(report.written) == EXPECTED
        assert report.overwritten == () and report.conflicts == ()
        assert report.packages == {"clsx": "^2.0.0", "react": "^18.3.0"}
        assert report.packages_to_install == {"clsx": "^2.0.0"}
        assert report.to_dict()["transaction_id"] == report.transaction_id

    def test_reinstall_skips_identical_files(self, resolved, tmp_path):
        _install(resolved(), tmp_path)
        report = _install(resolved(), tmp_path)
        assert report.written == ()
        assert sorted(report.skipped_identical) == EXPECTED

    def test_conflict_writes_nothing(self, resolved, tmp_path):
        existing = tmp_path / "components/app/index.tsx"
        existing.parent.mkdir(parents=True)
        existing.write_text("// mine\n")
        with pytest.raises(FileConflict) as excinfo:
            _install(resolved(), tmp_path)
        assert excinfo.value.paths == ["components/app/index.tsx"]
        assert _files(tmp_path) == ["components/app/index.tsx"]
        assert existing.read_text() == "// mine\n"
        assert not (tmp_path / "components/card").exists()

    def test_force_overwrites(self, resolved, tmp_path):
        existing = tmp_path / "components/app/index.tsx"
        existing.parent.mkdir(parents=True)
        existing.write_text("// mine\n")
        report = _install(resolved(), tmp_path, force=True)
        assert report.overwritten == ("components/app/index.tsx",)
        assert "components/app/index.tsx" not in report.written
        assert _files(tmp_path) == EXPECTED

    def test_dry_run_touches_nothing(self, resolved, tmp_path):
        existing = tmp_path / "components/app/index.tsx"
        existing.parent.mkdir(parents=True)
        existing.write_text("// mine\n")
        report = _install(resolved(), tmp_path, dry_run=True)
        assert report.dry_run
        assert report.conflicts == ("components/app/index.tsx",)
        assert sorted(report.written) == [p for p in EXPECTED if p != "components/app/index.tsx"]
        assert _files(tmp_path) == ["components/app/index.tsx"]

    def test_failed_promotion_restores_everything(self, resolved, tmp_path):
        calls = []

        def flaky_replace(src, dst):
            calls.append(dst)
            if len(calls) == 3:
                raise OSError("disk full")
            os.replace(src, dst)

        with patch("install.transaction._atomic_replace", side_effect=flaky_replace):
            with pytest.raises(PromotionFailure) as excinfo:
                _install(resolved(), tmp_path)
        assert excinfo.value.path == "components/app/utils.ts"
        assert "disk full" in str(excinfo.value)
        assert _files(tmp_path) == []
        assert not (tmp_path / "components").exists()

    def test_failed_promotion_restores_overwritten_files(self, resolved, tmp_path):
        existing = tmp_path / "components/app/index.tsx"
        existing.parent.mkdir(parents=True)
        existing.write_text("// mine\n")

        def flaky_replace(src, dst):
            if Path(src).name.endswith(".tmp") and Path(dst).name == "utils.ts":
                raise OSError("disk full")
            os.replace(src, dst)

        with patch("install.transaction._atomic_replace", side_effect=flaky_replace):
            with pytest.raises(PromotionFailure):
                _install(resolved(), tmp_path, force=True)
        assert _files(tmp_path) == ["components/app/index.tsx"]
        assert existing.read_text() == "// mine\n"

    def test_transform_failures_are_collected(self, resolved, tmp_path):
        result = resolved(card_files={"index.tsx": 'const a = "open;\n', "card.css": ".card {\n"})
        with pytest.raises(TransformFailed) as excinfo:
            _install(result, tmp_path)
        assert [e.path for e in excinfo.value.errors] == ["index.tsx", "card.css"]
        assert all(e.component == "card" for e in excinfo.value.errors)
        assert _files(tmp_path) == []

    def test_sweeps_leftovers_before_installing(self, resolved, tmp_path):
        app_dir = tmp_path / "components/app"
        app_dir.mkdir(parents=True)
        (app_dir / ".index.tsx.fetchui-abc123.tmp").write_text("partial")
        (app_dir / ".old.tsx.fetchui-abc123.bak").write_text("old")
        _install(resolved(), tmp_path)
        assert (app_dir / "old.tsx").read_text() == "old"
        assert not any(".fetchui-" in p for p in _files(tmp_path))

    def test_global_styles_and_custom_dir(self, resolved, tmp_path):
        context = TransformContext(target_dir="src/ui", style_strategy=StyleStrategy.GLOBAL)
        _install(resolved(), tmp_path, context=context)
        assert "styles/app/app.css" in _files(tmp_path)
        index = (tmp_path / "src/ui/app/index.tsx").read_text()
        assert 'import "../../../styles/app/app.css";' in index

    def test_cancelled_staging_leaves_no_temp_files(self, resolved, tmp_path, monkeypatch):
        original_stage = InstallTransaction.stage

        def slow_stage(self, relative_path, content):
            staged = original_stage(self, relative_path, content)
            time.sleep(0.2)
            return staged

        monkeypatch.setattr(InstallTransaction, "stage", slow_stage)
        result = resolved()

        async def go():
            task = asyncio.ensure_future(
                InstallOrchestrator().install(result, TransformContext(), InstallOptions(target_dir=tmp_path))
            )
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(go())
        assert _files(tmp_path) == []
        assert not (tmp_path / "components").exists()

    def test_scoped_and_bare_names_cannot_share_a_directory(self, manifest, registry_factory, tmp_path):
        client = registry_factory([
            manifest("app", files={"app.ts": "export {};\n"}, components=["@fetch-ui/button", "button"]),
            manifest("@fetch-ui/button"),
            manifest("button"),
        ])
        result = asyncio.run(DependencyResolver(client).resolve(ComponentRef("app")))
        with pytest.raises(TargetCollision) as excinfo:
            _install(result, tmp_path)
        assert excinfo.value.path == "components/button/index.tsx"
        assert excinfo.value.sources == ["@fetch-ui/button:index.tsx", "button:index.tsx"]
        assert excinfo.value.exit_code == ExitCodes.INSTALL_ERROR
        assert _files(tmp_path) == []


class TestInstallTransaction:
    """Transaction primitives."""

    def test_cancellation_during_promotion_rolls_back(self, tmp_path):
        txn = InstallTransaction(tmp_path)
        for name in ("a.ts", "b.ts", "c.ts"):
            txn.add(txn.stage(f"components/{name}", "export {};\n"))

        async def go():
            task = asyncio.ensure_future(txn.promote())
            await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(go())
        assert txn.rolled_back and not txn.committed
        assert _files(tmp_path) == []

    def test_paths_cannot_escape_root(self, tmp_path):
        txn = InstallTransaction(tmp_path / "project")
        with pytest.raises(StagingFailure):
            txn.stage("../outside.ts", "")

    def test_sweep_only_touches_marker_files(self, tmp_path):
        base = tmp_path / "components"
        base.mkdir()
        (base / "keep.tsx").write_text("keep")
        (base / ".keep.tsx.fetchui-0123abcd.bak").write_text("older")
        (base / ".new.tsx.fetchui-0123abcd.tmp").write_text("partial")
        (base / ".hidden").write_text("x")
        handled = sweep_stale_temp_files(tmp_path, ["components", "missing"])
        assert len(handled) == 2
        assert _files(tmp_path) == ["components/.hidden", "components/keep.tsx"]
        assert (base / "keep.tsx").read_text() == "keep"


class TestPackageReconciliation:
    """npm ranges against package.json."""

    def test_reads_all_sections_first_wins(self, tmp_path):
        (tmp_path / "package.json").write_text(json.dumps({
            "dependencies": {"react": "^18.0.0"},
            "devDependencies": {"react": "^17.0.0", "vitest": "^1.0.0"},
            "peerDependencies": {"react-dom": "^18.0.0"},
        }))
        assert read_project_dependencies(tmp_path) == {
            "react": "^18.0.0",
            "vitest": "^1.0.0",
            "react-dom": "^18.0.0",
        }

    def test_missing_or_broken_package_json(self, tmp_path, caplog):
        assert read_project_dependencies(tmp_path) == {}
        (tmp_path / "package.json").write_text("{")
        assert read_project_dependencies(tmp_path) == {}
        assert "Ignoring unreadable" in caplog.text

    def test_merge(self):
        packages, to_install = merge_package_versions(
            {"clsx": "^2.0.0", "react": "^18.2.0", "lucide": "^0.300.0", "ui": "^1.0.0", "pinned": "^1.2.0"},
            {"react": "^18.3.0", "lucide": "^0.200.0", "ui": "workspace:*", "pinned": "1.4.0", "other": "1.0.0"},
        )
        assert to_install == {"clsx": "^2.0.0", "lucide": "^0.300.0"}
        assert packages == {
            "clsx": "^2.0.0",
            "lucide": "^0.300.0",
            "other": "1.0.0",
            "pinned": "1.4.0",
            "react": "^18.3.0",
            "ui": "workspace:*",
        }

    def test_declared_range_narrowed(self):
        _, to_install = merge_package_versions({"react": "^18.2.0"}, {"react": "^18.0.0"})
        assert to_install == {"react": "^18.2.0"}
