"""
Transcript discovery service - finds projects and session files on disk.

The only part of the package that touches the filesystem. Layout:

    {projects_dir}/{project_name}/{session}.jsonl

Project directory names are the producer's lossy encoding of the project's
working directory ('/', '.', ' ' and '~' all become '-'); they are used verbatim
as project names.
"""

from __future__ import annotations

import datetime
import logging
from pathlib import Path

from transcript_stats.exceptions import ProjectNotFoundError
from transcript_stats.services.reconstruct import SessionSource
from transcript_stats.timestamps import isoformat_utc

logger = logging.getLogger(__name__)

SESSION_FILE_GLOB = '*.jsonl'


def file_modified_time(path: Path) -> str:
    """File modification time as ISO-8601 UTC, or '' when the file does not exist."""
    try:
        mtime = path.stat().st_mtime
    except FileNotFoundError:
        return ''
    return isoformat_utc(datetime.datetime.fromtimestamp(mtime, tz=datetime.UTC))


def split_jsonl(text: str) -> list[str]:
    """
    Split JSONL text into lines on '\\n' only, dropping a trailing '\\r' per line.

    str.splitlines() also breaks on U+2028, U+2029, U+0085 and other separators
    that JSON strings may carry unescaped.
    """
    lines = [line.removesuffix('\r') for line in text.split('\n')]
    if lines and lines[-1] == '':
        lines.pop()
    return lines


class TranscriptDiscoveryService:
    """
    Service for discovering transcript files under a projects directory.

    Returns paths in sorted order so listings are deterministic.
    """

    def __init__(self, projects_dir: Path) -> None:
        self.projects_dir = projects_dir.expanduser().resolve()

    def list_projects(self) -> list[Path]:
        """Project directories under the projects root (empty when the root is missing)."""
        if not self.projects_dir.is_dir():
            logger.debug('Projects directory does not exist: %s', self.projects_dir)
            return []
        return sorted(p for p in self.projects_dir.iterdir() if p.is_dir())

    def project_dir(self, project_name: str) -> Path:
        """
        Resolve a project name to its directory.

        Raises:
            ProjectNotFoundError: If no such directory exists
        """
        path = self.projects_dir / project_name
        if not path.is_dir():
            raise ProjectNotFoundError(project_name)
        return path

    def list_session_files(self, project_name: str) -> list[Path]:
        """Session files of a project, sorted by name."""
        return self.session_files_in(self.project_dir(project_name))

    def session_files_in(self, directory: Path) -> list[Path]:
        return sorted(p for p in directory.glob(SESSION_FILE_GLOB) if p.is_file())

    def read_source(self, file_path: Path, project_name: str | None = None) -> SessionSource:
        """
        Read one session file into a SessionSource.

        Bytes are decoded as UTF-8 with replacement characters. A missing file
        yields a source with no lines. See split_jsonl for line splitting.

        Args:
            file_path: Session file path
            project_name: Owning project (defaults to the parent directory name)

        Returns:
            SessionSource ready for reconstruction
        """
        file_path = file_path.expanduser().resolve()
        try:
            lines = split_jsonl(file_path.read_bytes().decode('utf-8', errors='replace'))
        except FileNotFoundError:
            logger.debug('Session file not found, treating as empty: %s', file_path)
            lines = []

        return SessionSource(
            file_path=str(file_path),
            project_name=project_name or file_path.parent.name,
            lines=lines,
            last_modified=file_modified_time(file_path),
        )
