import os
import os.path as path
import shutil
import subprocess
import typing as T

import pytest

import bsdci.utils.proc as bcu_proc
from bsdci.data.build import BuildJob, BuildLang, BuildOS, Project
from bsdci.pot import PotManager

SOURCE_TREE = {
    ".bsd-ci.yml": b"language: rust\nos: FreeBSD\nrust:\n  - stable\nFreeBSD:\n  - '11.2'\n",
    "Cargo.toml": b'[package]\nname = "potnet"\n',
    "src/main.rs": b"fn main() {}\n",
}


def read_tree(root: str) -> dict[str, bytes]:
    tree = {}
    for dirpath, _, filenames in os.walk(root):
        for filename in filenames:
            full = path.join(dirpath, filename)
            with open(full, "rb") as f:
                tree[path.relpath(full, root)] = f.read()
    return tree


class FakePot:
    """
    Stands in for the ``pot`` and ``git`` executables.  Pots, fscomps and snapshots
    are directories under ``root``.
    """

    def __init__(self, root: str) -> None:
        self.fscomp_prefix = path.join(root, "fscomp")
        self.pot_prefix = path.join(root, "jails")
        self.snapshot_prefix = path.join(root, "snapshots")
        for d in (self.fscomp_prefix, self.pot_prefix, self.snapshot_prefix):
            os.makedirs(d)

        self.bases: set[str] = set()
        self.pots: dict[str, dict[str, T.Any]] = {}
        self.fscomps: set[str] = set()

        self.calls: list[tuple[str, ...]] = []
        self.fail: set[str] = set()
        """Subcommands (or ``git``) that exit with a failure."""
        self.destroy_failures = 0
        """Number of ``destroy -p`` invocations failing before one succeeds."""
        self.start_returncode = 0
        self.source_tree = dict(SOURCE_TREE)

        self.trees_seen: list[dict[str, bytes]] = []
        """The fscomp tree as every started pot found it."""
        self.final_trees: dict[str, dict[str, bytes]] = {}
        """The tree of each fscomp right before it was destroyed."""

    def __call__(self, *args: str) -> "subprocess.CompletedProcess[bytes]":
        self.calls.append(args)
        exe, sub, *rest = args
        if exe == "git":
            return self._git(args, rest)
        if sub in self.fail:
            return self._result(args, 1, stderr=f"{sub} failed\n".encode())
        return getattr(self, "_" + sub.replace("-", "_"))(args, *rest)

    @staticmethod
    def _result(
        args: tuple[str, ...], returncode: int = 0, stdout: bytes = b"", stderr: bytes = b""
    ) -> "subprocess.CompletedProcess[bytes]":
        return subprocess.CompletedProcess(list(args), returncode, stdout, stderr)

    def fscomp_dir(self, name: str) -> str:
        return path.join(self.fscomp_prefix, name)

    def pot_dir(self, name: str) -> str:
        return path.join(self.pot_prefix, name)

    def pot_calls(self, sub: str) -> list[tuple[str, ...]]:
        return [c for c in self.calls if c[0] == "pot" and c[1] == sub]

    # pot subcommands.

    def _ls(self, args, flag):
        names = sorted(self.fscomps) if flag == "-fq" else sorted(self.bases | set(self.pots))
        return self._result(args, stdout="".join(f"{n}\n" for n in names).encode())

    def _config(self, args, _flag, key):
        prefix = dict(fscomp_prefix=self.fscomp_prefix, pot_prefix=self.pot_prefix)[key]
        return self._result(args, stdout=f"{prefix}\n".encode())

    def _clone(self, args, _f, _P, base, _p, name):
        if base not in self.bases or name in self.pots or name in self.bases:
            return self._result(args, 1)
        os.makedirs(path.join(self.pot_dir(name), "m"))
        self.pots[name] = dict(base=base, fscomps=[], cmd=None, running=False)
        return self._result(args)

    def _add_fscomp(self, args, _p, pot, _f, fscomp, _m, mount_point):
        if pot not in self.pots or fscomp not in self.fscomps:
            return self._result(args, 1)
        self.pots[pot]["fscomps"].append((fscomp, mount_point))
        return self._result(args)

    def _set_cmd(self, args, _p, pot, _c, cmd):
        if pot not in self.pots:
            return self._result(args, 1)
        self.pots[pot]["cmd"] = cmd
        return self._result(args)

    def _start(self, args, pot):
        if pot not in self.pots:
            return self._result(args, 1)
        state = self.pots[pot]
        state["running"] = True
        assert state["cmd"] == "/root/build.sh"
        assert path.isfile(path.join(self.pot_dir(pot), "m", "root", "build.sh"))
        for fscomp, _ in state["fscomps"]:
            root = self.fscomp_dir(fscomp)
            self.trees_seen.append(read_tree(root))
            # Builds leave things behind in the sources.
            os.makedirs(path.join(root, "target"), exist_ok=True)
            with open(path.join(root, "target", "potnet"), "wb") as f:
                f.write(f"built by {pot}".encode())
        return self._result(
            args,
            self.start_returncode,
            stdout=f"building in {pot}\n".encode(),
            stderr=b"warning: unused variable\n",
        )

    def _stop(self, args, pot):
        if pot not in self.pots:
            return self._result(args, 1)
        self.pots[pot]["running"] = False
        return self._result(args)

    def _destroy(self, args, flag, name):
        if flag == "-f":
            if name not in self.fscomps:
                return self._result(args, 1)
            self.final_trees[name] = read_tree(self.fscomp_dir(name))
            self.fscomps.remove(name)
            shutil.rmtree(self.fscomp_dir(name))
            shutil.rmtree(path.join(self.snapshot_prefix, name), ignore_errors=True)
            return self._result(args)

        if name not in self.pots:
            return self._result(args, 1)
        if self.destroy_failures > 0:
            self.destroy_failures -= 1
            return self._result(args, 1)
        del self.pots[name]
        shutil.rmtree(self.pot_dir(name))
        return self._result(args)

    def _create_fscomp(self, args, _f, name):
        if name in self.fscomps:
            return self._result(args, 1)
        os.makedirs(self.fscomp_dir(name))
        self.fscomps.add(name)
        return self._result(args)

    def _snapshot(self, args, _f, name):
        if name not in self.fscomps:
            return self._result(args, 1)
        snapshot = path.join(self.snapshot_prefix, name)
        shutil.rmtree(snapshot, ignore_errors=True)
        shutil.copytree(self.fscomp_dir(name), snapshot)
        return self._result(args)

    def _revert(self, args, _f, name):
        snapshot = path.join(self.snapshot_prefix, name)
        if name not in self.fscomps or not path.isdir(snapshot):
            return self._result(args, 1)
        shutil.rmtree(self.fscomp_dir(name))
        shutil.copytree(snapshot, self.fscomp_dir(name))
        return self._result(args)

    # git.

    def _git(self, args, rest):
        if "git" in self.fail:
            return self._result(args, 128, stderr=b"fatal: repository not found\n")
        dest = rest[-1]
        for name, content in self.source_tree.items():
            full = path.join(dest, name)
            os.makedirs(path.dirname(full), exist_ok=True)
            with open(full, "wb") as f:
                f.write(content)
        return self._result(args)


@pytest.fixture
def fake_pot(tmp_path, monkeypatch) -> FakePot:
    fake = FakePot(str(tmp_path / "pot"))
    monkeypatch.setattr(bcu_proc, "run_command", fake)
    return fake


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def pot_manager(fake_pot, clock) -> PotManager:
    return PotManager(sleep=clock.sleep, clock=clock)


@pytest.fixture
def project() -> Project:
    return Project(owner="pizzamig", name="potnet")


def make_job(version: str, variant: str, deploy: bool = True) -> BuildJob:
    return BuildJob(
        lang=BuildLang(name="rust", variant=variant),
        os=BuildOS(family="FreeBSD", version=version),
        deploy=deploy,
    )
