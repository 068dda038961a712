from __future__ import annotations

import os
import stat
import sys
from pathlib import Path

import pytest

from nit import __version__
from nit.cli import EXIT_NO_TARGETS, EXIT_USAGE, main

pytestmark = pytest.mark.skipif(os.name != "posix", reason="fake git script needs a shebang")


def _write_fake_git(bin_dir: Path) -> Path:
    bin_dir.mkdir(parents=True, exist_ok=True)
    script = bin_dir / "fake-git"
    script.write_text(
        "\n".join(
            [
                f"#!{sys.executable}",
                "import sys, time",
                "from pathlib import Path",
                "argv = sys.argv[1:]",
                "if argv == ['--version']:",
                "    print('git version 2.99.0')",
                "    sys.exit(0)",
                "if 'rev-parse' in argv:",
                "    sys.exit(128)",
                "if '-C' not in argv:",
                "    sys.exit(0)",
                "repo = Path(argv[argv.index('-C') + 1])",
                "def read(name):",
                "    p = repo / name",
                "    return p.read_bytes() if p.exists() else b''",
                "delay = read('.fake_delay')",
                "if delay:",
                "    time.sleep(float(delay))",
                "sys.stdout.buffer.write(read('.fake_stdout'))",
                "sys.stderr.buffer.write(read('.fake_stderr'))",
                "code = read('.fake_exit')",
                "sys.exit(int(code) if code else 0)",
                "",
            ]
        ),
        encoding="utf-8",
    )
    script.chmod(script.stat().st_mode | stat.S_IXUSR)
    return script


def _make_repo(root: Path, name: str, *, stdout: bytes = b"", stderr: bytes = b"", exit_code: int = 0) -> Path:
    repo = root / name
    (repo / ".git").mkdir(parents=True)
    (repo / ".fake_stdout").write_bytes(stdout)
    (repo / ".fake_stderr").write_bytes(stderr)
    (repo / ".fake_exit").write_text(str(exit_code), encoding="utf-8")
    return repo


@pytest.fixture()
def workspace(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    fake_git = _write_fake_git(tmp_path / "bin")
    config = tmp_path / "config.toml"
    config.write_text(f'[defaults]\ngit = "{fake_git}"\n', encoding="utf-8")
    root = tmp_path / "work"
    root.mkdir()
    monkeypatch.setenv("NIT_CONFIG", str(config))
    monkeypatch.chdir(root)
    return root


def test_no_command_prints_help(capsys: pytest.CaptureFixture[str]) -> None:
    assert main([]) == 0
    assert "usage: nit" in capsys.readouterr().out


def test_version_flag(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["--version"])
    assert excinfo.value.code == 0
    assert capsys.readouterr().out.strip() == f"nit v{__version__}"


def test_no_repositories_found(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["status"]) == EXIT_NO_TARGETS
    assert "No git repositories found" in capsys.readouterr().out


def test_invalid_config_is_usage_error(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys: pytest.CaptureFixture[str]
) -> None:
    config = tmp_path / "bad.toml"
    config.write_text("[defaults]\nworkers = -3\nbogus = 1\n", encoding="utf-8")
    monkeypatch.chdir(tmp_path)
    with pytest.raises(SystemExit) as excinfo:
        main(["--config", str(config), "status"])
    assert excinfo.value.code == EXIT_USAGE
    err = capsys.readouterr().err
    assert "Invalid config" in err
    assert "workers" in err


def test_negative_workers_flag_is_usage_error(capsys: pytest.CaptureFixture[str]) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["-n", "-1", "status"])
    assert excinfo.value.code == EXIT_USAGE


def test_unknown_meta_subcommand(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["meta", "frobnicate"]) == EXIT_USAGE
    assert "Unknown meta subcommand: frobnicate" in capsys.readouterr().err


def test_meta_help_reports_git_version(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    assert main(["meta", "help"]) == 0
    out = capsys.readouterr().out
    assert out.startswith(f"nit v{__version__} (git 2.99.0)")


def test_status_across_repositories(workspace: Path, capsysbinary: pytest.CaptureFixture[bytes]) -> None:
    _make_repo(workspace, "beta", stdout=b"## main...origin/main [behind 2]\n M a.txt\n")
    _make_repo(workspace, "alpha", stdout=b"## dev\n")
    (workspace / "alpha" / ".fake_delay").write_text("0.2", encoding="utf-8")
    (workspace / "not-a-repo").mkdir()

    assert main(["--no-handoff", "-n", "0", "status"]) == 0
    lines = capsysbinary.readouterr().out.decode("utf-8").splitlines()
    assert lines == [
        "[alpha                   ] dev              clean",
        "[beta                    ] main             1 modified, 2 behind",
    ]


def test_failures_set_exit_code_and_summary(workspace: Path, capsysbinary: pytest.CaptureFixture[bytes]) -> None:
    _make_repo(workspace, "alpha", stdout=b"Already up to date.\n")
    _make_repo(workspace, "beta", stderr=b"fatal: couldn't find remote ref main\n", exit_code=1)

    assert main(["--no-handoff", "pull"]) == 1
    captured = capsysbinary.readouterr()
    lines = captured.out.decode("utf-8").splitlines()
    assert lines[0].endswith("up to date")
    assert lines[1].endswith("ERROR: fatal: couldn't find remote ref main")
    assert b"1 of 2 repositories failed" in captured.err


def test_dry_run_prints_banner_and_commands(workspace: Path, capsysbinary: pytest.CaptureFixture[bytes]) -> None:
    repo = _make_repo(workspace, "alpha")
    (repo / ".fake_exit").write_text("1", encoding="utf-8")

    assert main(["--dry-run", "--ssh", "fetch", "--prune"]) == 0
    lines = capsysbinary.readouterr().out.decode("utf-8").splitlines()
    assert "dry-run mode" in lines[0]
    assert lines[1].startswith("[alpha")
    assert lines[1].endswith(f"-c url.git@github.com:.insteadOf=https://github.com/ -C {repo} fetch --prune")


def test_passthrough_is_verbatim_by_default(workspace: Path, capsysbinary: pytest.CaptureFixture[bytes]) -> None:
    _make_repo(workspace, "alpha", stdout=b"abc1234 first\ndef5678 second\n")

    assert main(["--no-handoff", "log", "--oneline", "-2"]) == 0
    out = capsysbinary.readouterr().out.decode("utf-8")
    assert out == "[alpha                   ]\nabc1234 first\ndef5678 second\n"


def test_oneline_flag_condenses_passthrough(workspace: Path, capsysbinary: pytest.CaptureFixture[bytes]) -> None:
    _make_repo(workspace, "alpha", stdout=b"abc1234 first\ndef5678 second\n")

    assert main(["--no-handoff", "--oneline", "log", "-2"]) == 0
    out = capsysbinary.readouterr().out.decode("utf-8")
    assert out == "[alpha                   ] abc1234 first\n"


def test_blank_command_is_usage_error(workspace: Path, capsys: pytest.CaptureFixture[str]) -> None:
    _make_repo(workspace, "alpha")
    with pytest.raises(SystemExit) as excinfo:
        main(["--no-handoff", " "])
    assert excinfo.value.code == EXIT_USAGE
    assert "git command must not be blank" in capsys.readouterr().err
