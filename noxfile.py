#!/usr/bin/env -S uv run --script
# /// script
# requires-python = ">=3.10"
# dependencies = [
#     "nox==2025.5.1",
# ]
# ///

from __future__ import annotations

import os
from typing import (
    Final,
    List,
    Sequence,
)

import nox


nox.needs_version = ">=2025.5.1"


nox.options.error_on_external_run = True
nox.options.reuse_venv = "yes"
nox.options.default_venv_backend = "uv|virtualenv"

PYPROJECT = nox.project.load_toml()

SUPPORTED_PYTHONS: Final[List[str]] = ["3.10", "3.11", "3.12", "3.13"]
CI: Final[bool] = "CI" in os.environ


def install_deps(
    session: nox.Session,
    *,
    extras: Sequence[str] | None = None,
    groups: Sequence[str] | None = None,
    project: bool = True,
) -> None:
    """Helper to install the project and dependency groups with pip."""
    command: List[str] = []
    if project:
        command.append("-e")
        command.append(".")
        if extras:
            # project[extra1,extra2]
            command[-1] += "[" + ",".join(extras) + "]"
    if groups:
        command.extend(nox.project.dependency_groups(PYPROJECT, *groups))
    session.install(*command)


@nox.session(python=SUPPORTED_PYTHONS)
def tests(session: nox.Session) -> None:
    """Run the test suite."""
    install_deps(session, extras=["test"])
    session.run("pytest", *session.posargs)


@nox.session
def lint(session: nox.Session) -> None:
    """Check all paths for linting errors."""
    install_deps(session, groups=["tools"], project=False)
    session.run("ruff", "check", "bottrapper", "tests", *session.posargs)


if __name__ == "__main__":
    nox.main()
