from __future__ import annotations

import os
import shutil
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict

import pytest

BASE_TIME = 1_577_880_000  # 2020-01-01 12:00:00 UTC


@dataclass
class SampleRepo:
    path: Path
    env: Dict[str, str]
    commits: Dict[str, str] = field(default_factory=dict)

    def git(self, *args: str, when: int = BASE_TIME) -> str:
        env = dict(self.env, GIT_AUTHOR_DATE=f"{when} +0000", GIT_COMMITTER_DATE=f"{when} +0000")
        cp = subprocess.run(["git", *args], cwd=self.path, env=env, check=True, capture_output=True, text=True)
        return cp.stdout.strip()

    def write(self, rel: str, content: str | bytes) -> None:
        target = self.path / rel
        target.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(content, bytes):
            target.write_bytes(content)
        else:
            target.write_text(content, encoding="utf-8")

    def commit(self, label: str, message: str, when: int) -> str:
        self.git("add", "-A", when=when)
        self.git("commit", "-q", "-m", message, when=when)
        self.commits[label] = self.git("rev-parse", "HEAD", when=when)
        return self.commits[label]


@pytest.fixture
def sample_repo(tmp_path: Path) -> SampleRepo:
    """main: two commits, tagged and annotated with a note; feature/x branches off the first."""
    if shutil.which("git") is None:
        pytest.skip("git executable not available")

    path = tmp_path / "repo"
    path.mkdir()
    env = dict(
        os.environ,
        HOME=str(tmp_path),
        XDG_CONFIG_HOME=str(tmp_path / "xdg"),
        GIT_CONFIG_NOSYSTEM="1",
        GIT_AUTHOR_NAME="Ann Author",
        GIT_AUTHOR_EMAIL="ann@example.com",
        GIT_COMMITTER_NAME="Ann Author",
        GIT_COMMITTER_EMAIL="ann@example.com",
    )
    repo = SampleRepo(path, env)
    repo.git("init", "-q")
    repo.git("symbolic-ref", "HEAD", "refs/heads/main")

    repo.write("README.md", "# Demo\n\nA sample project.\n")
    repo.write("src/app.py", "def main():\n    return 1\n")
    repo.write("logo.png", b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR" + bytes(range(256)))
    repo.commit("first", "Initial import", BASE_TIME)
    repo.git("tag", "light", when=BASE_TIME)

    repo.write("src/app.py", "def main():\n    return 2\n")
    repo.commit("second", "Bump the answer\n\nLonger body.", BASE_TIME + 86_400)
    repo.git("tag", "-a", "v1.0", "-m", "Release 1.0", when=BASE_TIME + 86_400)
    repo.git("notes", "add", "-m", "reviewed by bob", repo.commits["second"], when=BASE_TIME + 90_000)

    repo.git("checkout", "-q", "-b", "feature/x", repo.commits["first"], when=BASE_TIME)
    repo.write("docs/notes.txt", "feature notes\n")
    repo.commit("feature", "Add feature notes", BASE_TIME + 2 * 86_400)
    repo.git("checkout", "-q", "main", when=BASE_TIME)
    return repo
