import shutil
import sys

import pytest

import bsdci.cli as cli
from bsdci.data.build import Asset
from bsdci.data.config import CiConfig, load_and_validate_config
from bsdci.github import Release, RepoStatus

STATUS = RepoStatus(
    is_private=False,
    is_archived=False,
    is_locked=False,
    url="https://github.com/pizzamig/potnet",
    updated_at="2019-02-03T10:20:30Z",
)

CONFIG = """\
[tokens]
github = "secret"

[[projects]]
owner = "pizzamig"
project = "potnet"

[build]
log_dir = "{log_dir}"
on_failure = "{on_failure}"
"""

IMAGE = "FreeBSD-11_2-rust-stable"
POT = f"{IMAGE}-pizzamig__potnet"


@pytest.fixture
def environment(fake_pot, tmp_path, monkeypatch):
    fake_pot.bases.add(IMAGE)
    monkeypatch.setattr(shutil, "which", lambda cmd: f"/usr/local/bin/{cmd}")
    monkeypatch.setattr(cli.bcu_logging, "apply_logging_config", lambda cfg, verbose: None)
    queried = []

    def query_github(cfg, project, tag):
        queried.append((str(project), tag))
        release = None
        if tag is not None:
            release = Release(
                id=42, tag_name=tag, assets=[Asset(id=7, name="FreeBSD-11.2-potnet.tar.gz")]
            )
        return STATUS, release

    monkeypatch.setattr(cli, "query_github", query_github)
    return queried


def run_main(tmp_path, monkeypatch, *args, on_failure="leave"):
    config_file = tmp_path / "bsd-ci.conf"
    config_file.write_text(CONFIG.format(log_dir=tmp_path / "logs", on_failure=on_failure))
    monkeypatch.setattr(sys, "argv", ["bsd-ci", "-c", str(config_file), *args])
    cli.main()


def test_builds_project(environment, fake_pot, tmp_path, monkeypatch):
    run_main(tmp_path, monkeypatch)

    assert environment == [("pizzamig/potnet", None)]
    git_calls = [c for c in fake_pot.calls if c[0] == "git"]
    assert len(git_calls) == 1
    assert git_calls[0][-2] == "https://github.com/pizzamig/potnet"
    assert (tmp_path / "logs" / f"{POT}.log").read_bytes() == f"building in {POT}\n".encode()
    assert fake_pot.pots == {}
    assert fake_pot.fscomps == set()


def test_render_only_with_release(environment, fake_pot, tmp_path, monkeypatch, capsys):
    run_main(tmp_path, monkeypatch, "-n", "-t", "v0.1.0")

    script = capsys.readouterr().out
    assert "releases/assets/7" in script
    assert "releases/42/assets?name=FreeBSD-11.2-potnet.tar.gz" in script
    assert fake_pot.pot_calls("start") == []
    assert fake_pot.fscomps == set()


def test_errors_exit_with_status_1(environment, fake_pot, tmp_path, monkeypatch, caplog):
    fake_pot.bases.clear()
    with pytest.raises(SystemExit) as e:
        run_main(tmp_path, monkeypatch)
    assert e.value.code == 1
    assert f"error: Missing pot: {IMAGE}" in caplog.text


def test_force_flag(environment, fake_pot, tmp_path, monkeypatch):
    fake_pot.fail.add("start")
    with pytest.raises(SystemExit):
        run_main(tmp_path, monkeypatch)
    fake_pot.fail.clear()

    with pytest.raises(SystemExit):
        run_main(tmp_path, monkeypatch)
    run_main(tmp_path, monkeypatch, "-f")
    assert fake_pot.pots == {}


@pytest.mark.parametrize(
    "on_failure, fscomps", [("leave", {"pizzamig__potnet"}), ("cleanup", set())]
)
def test_bad_matrix(environment, fake_pot, tmp_path, monkeypatch, caplog, on_failure, fscomps):
    fake_pot.source_tree[".bsd-ci.yml"] = b"language: ruby\nos: FreeBSD\n"
    with pytest.raises(SystemExit):
        run_main(tmp_path, monkeypatch, on_failure=on_failure)
    assert "language not supported" in caplog.text
    assert fake_pot.fscomps == fscomps


def test_unknown_project(environment, fake_pot, tmp_path, monkeypatch, caplog):
    with pytest.raises(SystemExit):
        run_main(tmp_path, monkeypatch, "-p", "pizzamig/pot")
    assert "Unknown project pizzamig/pot" in caplog.text
    assert environment == []


def test_pot_not_installed(environment, fake_pot, tmp_path, monkeypatch, caplog):
    monkeypatch.setattr(shutil, "which", lambda cmd: None)
    with pytest.raises(SystemExit):
        run_main(tmp_path, monkeypatch)
    assert "pot not found in PATH" in caplog.text
    assert fake_pot.calls == []


def test_run_has_no_result(environment, fake_pot, tmp_path, capsys):
    config_file = tmp_path / "bsd-ci.conf"
    config_file.write_text(CONFIG.format(log_dir=tmp_path / "logs", on_failure="leave"))
    args = cli.create_parser().parse_args(["-c", str(config_file), "-n"])
    cfg = load_and_validate_config(args.config, CiConfig)

    assert cli.run(cfg, args) is None
    assert "#!" in capsys.readouterr().out
