from pathlib import Path
import textwrap

import pytest
from pydantic import ValidationError

from associate.config import AssociateSettings, default_claude_home
from associate.project import ProjectConfigError, find_project_config, load_project_config


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.delenv("USERPROFILE", raising=False)
    monkeypatch.delenv("ASSOC_CLAUDE_HOME", raising=False)
    monkeypatch.delenv("ASSOC_LOG_LEVEL", raising=False)

    settings = AssociateSettings()

    assert settings.claude_home == tmp_path / ".claude"
    assert settings.tick_rate_ms == 250
    assert settings.debounce_ms == 200
    assert settings.tail_lines == 200
    assert settings.resolved_log_file == tmp_path / ".claude" / "associate.log"


def test_settings_read_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ASSOC_CLAUDE_HOME", str(tmp_path / "home"))
    monkeypatch.setenv("ASSOC_LOG_LEVEL", " debug ")
    monkeypatch.setenv("ASSOC_POLL_INTERVAL", "15")

    settings = AssociateSettings()

    assert settings.claude_home == tmp_path / "home"
    assert settings.log_level == "DEBUG"
    assert settings.poll_interval == 15.0


@pytest.mark.parametrize(
    ("name", "value"),
    [("ASSOC_LOG_LEVEL", "LOUD"), ("ASSOC_TICK_RATE_MS", "0"), ("ASSOC_FETCH_TIMEOUT", "-1")],
)
def test_settings_reject_invalid_values(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, name: str, value: str
) -> None:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv(name, value)

    with pytest.raises(ValidationError):
        AssociateSettings()


def test_default_claude_home_prefers_userprofile(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("USERPROFILE", "C:/Users/me")
    assert default_claude_home() == Path("C:/Users/me") / ".claude"


def test_project_config_missing_file_gives_defaults(tmp_path: Path) -> None:
    config = load_project_config(tmp_path)

    assert find_project_config(tmp_path) is None
    assert config.jira is None
    assert config.github.issues_enabled
    assert config.tabs.sessions and config.tabs.git
    assert config.tick_rate(250) == 250


def test_project_config_parses_integrations(tmp_path: Path) -> None:
    (tmp_path / ".assoc.yaml").write_text(
        textwrap.dedent(
            """
            github:
              repo: acme/widgets
              issues_enabled: false
            jira:
              project: WID
            linear:
              team: ENG
            display:
              tick_rate: 100
              tail_lines: 50
            tabs:
              plans: false
            """
        ),
        encoding="utf-8",
    )

    config = load_project_config(tmp_path)

    assert config.github.repo == "acme/widgets"
    assert not config.github.issues_enabled
    assert config.jira is not None and config.jira.project == "WID"
    assert config.linear is not None and config.linear.team == "ENG"
    assert config.tick_rate(250) == 100
    assert config.tail_lines(200) == 50
    assert not config.tabs.plans


def test_project_config_accepts_yml_and_empty_file(tmp_path: Path) -> None:
    (tmp_path / ".assoc.yml").write_text("", encoding="utf-8")

    assert find_project_config(tmp_path) == tmp_path / ".assoc.yml"
    assert load_project_config(tmp_path).linear is None


@pytest.mark.parametrize(
    "content",
    [
        "github: [unclosed",
        "- just\n- a list\n",
        "jira:\n  project: not-a-key\n",
        "display:\n  tick_rate: 0\n",
    ],
)
def test_project_config_reports_errors(tmp_path: Path, content: str) -> None:
    (tmp_path / ".assoc.yaml").write_text(content, encoding="utf-8")

    with pytest.raises(ProjectConfigError):
        load_project_config(tmp_path)
