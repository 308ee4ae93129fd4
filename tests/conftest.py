"""Shared fixtures for on-disk project layouts."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

import pytest

from builders import to_lines


@pytest.fixture
def write_session(tmp_path: Path) -> Callable[..., Path]:
    """Write records to {tmp_path}/projects/{project}/{name}.jsonl and return the file path."""

    def _write(project: str, name: str, records: Sequence[dict[str, Any] | str]) -> Path:
        project_dir = tmp_path / 'projects' / project
        project_dir.mkdir(parents=True, exist_ok=True)
        path = project_dir / f'{name}.jsonl'
        path.write_text('\n'.join(to_lines(records)) + '\n', encoding='utf-8')
        return path

    return _write


@pytest.fixture
def projects_dir(tmp_path: Path) -> Path:
    path = tmp_path / 'projects'
    path.mkdir(exist_ok=True)
    return path
