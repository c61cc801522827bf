"""Tests for argument parsing, project configuration and the fetch-ui commands."""

import json
from unittest.mock import patch

import pytest

import fetchui
from args import parse_args
from cli_config import build_transform_context, load_project_config, resolve_registry_location
from constants import Constants, ExitCodes
from registry.models import ComponentPage, ComponentSummary
from transform import StyleStrategy


def _publish(registry, name, version, files, components=(), packages=None, description=None):
    path = registry / "components" / name / version / "component.json"
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps({
        "name": name,
        "version": version,
        "files": [{"path": p, "content": c} for p, c in files.items()],
        "dependencies": {"components": list(components), "packages": packages or {}},
        "metadata": {"description": description} if description else {},
    }))


@pytest.fixture
def registry(tmp_path):
    root = tmp_path / "registry"
    _publish(root, "card", "1.0.0", {"index.tsx": 'import { Icon } from "icon";\nexport const Card = 1;\n'},
             components=["icon"], packages={"clsx": "^2.0.0"}, description="A card")
    _publish(root, "card", "1.1.0", {"index.tsx": "export const Card = 2;\n"}, description="A card")
    _publish(root, "icon", "0.2.0", {"index.ts": "export const Icon = 1;\n"})
    _publish(root, "loop-a", "1.0.0", {"index.ts": ""}, components=["loop-b"])
    _publish(root, "loop-b", "1.0.0", {"index.ts": ""}, components=["loop-a"])
    return root


@pytest.fixture
def project(tmp_path):
    root = tmp_path / "project"
    root.mkdir()
    return root


def _main(argv, monkeypatch):
    monkeypatch.setattr(fetchui, "configure_logging", lambda *args, **kwargs: None)
    with pytest.raises(SystemExit) as excinfo:
        fetchui.main(argv)
    return excinfo.value.code


class TestArgs:
    """Argument parsing."""

    def test_add_flags(self):
        args = parse_args(["add", "card@1.0.0", "-f", "-n", "--to", "src/ui", "--loglevel", "debug"])
        assert args.command == "add"
        assert args.COMPONENT == "card@1.0.0"
        assert args.FORCE and args.DRY_RUN
        assert args.TO == "src/ui"
        assert args.LOG_LEVEL == "DEBUG"
        assert args.CWD == "."

    def test_list_defaults(self):
        args = parse_args(["list"])
        assert args.PAGE == 1
        assert args.PAGE_SIZE == Constants.REGISTRY_PAGE_SIZE

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            parse_args([])


class TestProjectConfig:
    """Config files and precedence."""

    def test_yaml_config(self, project):
        (project / "fetchui.yaml").write_text(
            "aliases:\n  '@/registry/': '@/components/'\n"
            "style: global\nstylesDir: assets/css\ncomponentsDir: src/ui\ntsx: false\n"
            "classHelperPath: '@/lib/utils'\nregistry: https://reg.example\n"
        )
        config = load_project_config(project)
        assert config.aliases == {"@/registry/": "@/components/"}
        assert config.style is StyleStrategy.GLOBAL
        context = build_transform_context(config)
        assert context.target_dir == "src/ui"
        assert context.styles_dir == "assets/css"
        assert not context.typescript
        assert context.class_helper_path == "@/lib/utils"
        assert build_transform_context(config, "lib/components/").target_dir == "lib/components"

    def test_components_json(self, project):
        (project / "components.json").write_text(json.dumps({"style": "colocated", "tsx": True}))
        assert load_project_config(project).source.endswith("components.json")

    def test_broken_config_falls_back_to_defaults(self, project, caplog):
        (project / "fetchui.yaml").write_text("aliases: [unclosed\n")
        config = load_project_config(project)
        assert config.source is None
        assert config.components_dir == Constants.DEFAULT_COMPONENTS_DIR
        assert "Ignoring unreadable project config" in caplog.text

    def test_unknown_values_are_warned_about(self, project, caplog):
        (project / "fetchui.yaml").write_text("style: sideways\ntsx: maybe\naliases: [1]\n")
        config = load_project_config(project)
        assert config.style is StyleStrategy.COLOCATED
        assert config.typescript
        assert config.aliases == {}
        assert "Unknown style strategy" in caplog.text

    def test_registry_precedence(self, project, monkeypatch):
        monkeypatch.delenv(Constants.ENV_REGISTRY_URL, raising=False)
        (project / "fetchui.yaml").write_text("registry: https://from-config\n")
        config = load_project_config(project)
        assert resolve_registry_location(None, config) == "https://from-config"
        monkeypatch.setenv(Constants.ENV_REGISTRY_URL, "https://from-env")
        assert resolve_registry_location(None, config) == "https://from-env"
        assert resolve_registry_location("https://from-cli", config) == "https://from-cli"
        monkeypatch.delenv(Constants.ENV_REGISTRY_URL)
        assert resolve_registry_location(None, load_project_config(project / "missing")) == Constants.REGISTRY_URL


class TestAddCommand:
    """fetch-ui add against a local registry directory."""

    def test_add_installs_closure(self, registry, project, monkeypatch, capsys):
        code = _main(["add", "card@1.0.0", "-r", str(registry), "--cwd", str(project)], monkeypatch)
        assert code == ExitCodes.SUCCESS.value
        assert (project / "components/icon/index.ts").exists()
        card = (project / "components/card/index.tsx").read_text()
        assert 'from "../icon"' in card
        out = capsys.readouterr().out
        assert "Installed card@1.0.0 (2 component(s))" in out
        assert "clsx@^2.0.0" in out

    def test_add_latest_as_json(self, registry, project, monkeypatch, capsys):
        code = _main(["add", "card", "-r", str(registry), "--cwd", str(project), "--json", "-n"], monkeypatch)
        assert code == ExitCodes.SUCCESS.value
        payload = json.loads(capsys.readouterr().out)
        assert payload["resolution"]["components"] == {"card": "1.1.0"}
        assert payload["install"]["dry_run"] is True
        assert payload["install"]["written"] == ["components/card/index.tsx"]
        assert not (project / "components").exists()

    def test_conflict_exit_code(self, registry, project, monkeypatch):
        target = project / "components/card/index.tsx"
        target.parent.mkdir(parents=True)
        target.write_text("// local edits\n")
        code = _main(["add", "card", "-r", str(registry), "--cwd", str(project)], monkeypatch)
        assert code == ExitCodes.INSTALL_ERROR.value
        assert target.read_text() == "// local edits\n"

    def test_error_exit_codes(self, registry, project, monkeypatch):
        base = ["-r", str(registry), "--cwd", str(project)]
        assert _main(["add", "ghost"] + base, monkeypatch) == ExitCodes.REGISTRY_ERROR.value
        assert _main(["add", "loop-a"] + base, monkeypatch) == ExitCodes.RESOLUTION_ERROR.value
        assert _main(["add", "card", "-r", str(project / "nowhere")], monkeypatch) == ExitCodes.USAGE_ERROR.value

    def test_config_supplies_registry_and_dir(self, registry, project, monkeypatch):
        monkeypatch.delenv(Constants.ENV_REGISTRY_URL, raising=False)
        (project / "fetchui.yaml").write_text(f"registry: '{registry}'\ncomponentsDir: src/ui\n")
        assert _main(["add", "icon", "--cwd", str(project)], monkeypatch) == ExitCodes.SUCCESS.value
        assert (project / "src/ui/icon/index.ts").exists()


class TestCatalogueCommands:
    """fetch-ui list / info."""

    def test_list_local(self, registry, project, monkeypatch, capsys):
        code = _main(["list", "-r", str(registry), "--cwd", str(project), "--page-size", "2"], monkeypatch)
        assert code == ExitCodes.SUCCESS.value
        out = capsys.readouterr().out
        assert "card@1.1.0  A card" in out
        assert "icon@0.2.0" in out
        assert "2 of 4 component(s) (more available)" in out

    def test_info_local_json(self, registry, project, monkeypatch, capsys):
        code = _main(["info", "card@1.0.0", "-r", str(registry), "--cwd", str(project), "--json"], monkeypatch)
        assert code == ExitCodes.SUCCESS.value
        payload = json.loads(capsys.readouterr().out)
        assert payload["version"] == "1.0.0"
        assert payload["versions"] == ["1.0.0", "1.1.0"]
        assert payload["dependencies"] == {"components": ["icon"], "packages": {"clsx": "^2.0.0"}}

    @patch("registry.catalog.list_page")
    def test_list_http_uses_catalogue(self, mock_list_page, project, monkeypatch, capsys):
        mock_list_page.return_value = ComponentPage([ComponentSummary("button", "2.0.0")], 1, 1, 10)
        code = _main(["list", "-r", "https://reg.example", "--cwd", str(project)], monkeypatch)
        assert code == ExitCodes.SUCCESS.value
        mock_list_page.assert_called_once_with("https://reg.example", 1, Constants.REGISTRY_PAGE_SIZE)
        assert "button@2.0.0" in capsys.readouterr().out
