"""
Transcript stats service - wires discovery to the engine.

Every query re-reads and re-reconstructs the files it needs; nothing is cached.
Reconstruction of a project's files fans out over a thread pool (one task per
file, each producing a self-contained SessionDigest); merging into project and
global summaries happens afterwards on the calling thread.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import attrs

from transcript_stats.config.engine import EngineSettings
from transcript_stats.schemas.operations.edits import RecentEditsResult
from transcript_stats.schemas.operations.session import MessagePage, ProjectSummary, SearchHit, Session
from transcript_stats.schemas.operations.stats import (
    GlobalStatsSummary,
    ProjectStatsSummary,
    SessionComparison,
    SessionTokenStats,
)
from transcript_stats.schemas.types import SearchFilterType
from transcript_stats.services.discovery import TranscriptDiscoveryService, file_modified_time
from transcript_stats.services.recent_edits import collect_recent_edits
from transcript_stats.services.reconstruct import ReconstructedSession, SessionReconstructorService
from transcript_stats.services.rollup import (
    SessionDigest,
    build_global_summary,
    build_project_summary,
    compare_session,
    digest_session,
    rank_session_tokens,
)
from transcript_stats.services.search import search_messages
from transcript_stats.services.tool_calls import ErrorPredicate, default_error_predicate

logger = logging.getLogger(__name__)


@attrs.define(frozen=True)
class SessionResult:
    """One file's reconstruction and its rollup digest."""

    reconstructed: ReconstructedSession
    digest: SessionDigest


class TranscriptStatsService:
    """
    Query facade over a projects directory.

    Args:
        discovery: Filesystem collaborator
        reconstructor: Session reconstructor (carries the missing-timestamp policy)
        error_predicate: Tool-result error detection
        max_workers: Thread-pool width for per-file reconstruction (1 = serial)
        default_page_size: Page size used when the caller passes none
        exclude_sidechain: Default sidechain filtering for message retrieval
    """

    def __init__(
        self,
        discovery: TranscriptDiscoveryService,
        reconstructor: SessionReconstructorService | None = None,
        error_predicate: ErrorPredicate = default_error_predicate,
        max_workers: int = 1,
        default_page_size: int = 100,
        exclude_sidechain: bool = False,
    ) -> None:
        self.discovery = discovery
        self.error_predicate = error_predicate
        self.reconstructor = reconstructor or SessionReconstructorService(error_predicate=error_predicate)
        self.max_workers = max_workers
        self.default_page_size = default_page_size
        self.exclude_sidechain = exclude_sidechain

    @classmethod
    def from_settings(
        cls,
        settings: EngineSettings,
        error_predicate: ErrorPredicate = default_error_predicate,
    ) -> TranscriptStatsService:
        return cls(
            discovery=TranscriptDiscoveryService(settings.PROJECTS_DIR),
            reconstructor=SessionReconstructorService(
                missing_timestamp_policy=settings.MISSING_TIMESTAMP_POLICY,
                error_predicate=error_predicate,
            ),
            error_predicate=error_predicate,
            max_workers=settings.MAX_WORKERS,
            default_page_size=settings.DEFAULT_PAGE_SIZE,
            exclude_sidechain=settings.EXCLUDE_SIDECHAIN,
        )

    # ==========================================================================
    # Sessions
    # ==========================================================================

    def load_session(self, file_path: Path, project_name: str | None = None) -> ReconstructedSession:
        """Read and reconstruct one session file (a missing file yields an empty session)."""
        return self.reconstructor.reconstruct(self.discovery.read_source(file_path, project_name))

    def list_sessions(self, project_name: str) -> list[Session]:
        """Sessions of a project, most recently modified first."""
        results = self._load_files(self.discovery.list_session_files(project_name), project_name)
        sessions = [r.reconstructed.session for r in results]
        return sorted(sessions, key=lambda s: (s.last_modified, s.session_id), reverse=True)

    def get_messages(
        self,
        file_path: Path,
        offset: int = 0,
        limit: int | None = None,
        exclude_sidechain: bool | None = None,
    ) -> MessagePage:
        """
        Page through one session's messages in file order.

        Raises:
            ValueError: If offset is negative or limit is not positive
        """
        if exclude_sidechain is None:
            exclude_sidechain = self.exclude_sidechain
        reconstructed = self.load_session(file_path)
        if limit is None:
            limit = self.default_page_size
        return reconstructed.page(offset, limit, exclude_sidechain=exclude_sidechain)

    # ==========================================================================
    # Statistics
    # ==========================================================================

    def get_session_stats(self, file_path: Path) -> SessionTokenStats:
        return self._digest(self.load_session(file_path)).token_stats

    def get_project_stats(self, project_name: str) -> ProjectStatsSummary:
        digests = [r.digest for r in self._load_project(project_name)]
        return build_project_summary(project_name, digests)

    def get_project_token_stats(self, project_name: str) -> list[SessionTokenStats]:
        """Per-session token stats, highest total first."""
        return rank_session_tokens(r.digest for r in self._load_project(project_name))

    def compare_session(self, file_path: Path) -> SessionComparison:
        """
        Compare a session file with the other sessions in its directory.

        Raises:
            SessionNotFoundError: If the file is not a session of its directory
        """
        file_path = file_path.expanduser().resolve()
        project_name = file_path.parent.name
        results = self._load_files(self.discovery.session_files_in(file_path.parent), project_name)
        return compare_session([r.digest for r in results], str(file_path))

    def get_global_stats(self) -> GlobalStatsSummary:
        projects: dict[str, Sequence[SessionDigest]] = {}
        for project_dir in self.discovery.list_projects():
            results = self._load_files(self.discovery.session_files_in(project_dir), project_dir.name)
            projects[project_dir.name] = [r.digest for r in results]
        return build_global_summary(projects)

    # ==========================================================================
    # Projects & search
    # ==========================================================================

    def list_projects(self) -> list[ProjectSummary]:
        """Every project with its session and message counts, most recently modified first."""
        summaries: list[ProjectSummary] = []
        for project_dir in self.discovery.list_projects():
            files = self.discovery.session_files_in(project_dir)
            results = self._load_files(files, project_dir.name)
            summaries.append(
                ProjectSummary(
                    name=project_dir.name,
                    path=str(project_dir),
                    session_count=len(files),
                    message_count=sum(r.reconstructed.session.message_count for r in results),
                    last_modified=max((file_modified_time(f) for f in files), default=''),
                )
            )
        return sorted(summaries, key=lambda p: (p.last_modified, p.name), reverse=True)

    def search(
        self,
        query: str,
        filter_type: SearchFilterType = 'content',
        project_name: str | None = None,
        limit: int | None = None,
    ) -> list[SearchHit]:
        """
        Search messages of one project (or every project) in file order.

        Args:
            query: Case-insensitive substring
            filter_type: 'content' or 'toolId'
            project_name: Restrict to one project
            limit: Maximum number of hits overall
        """
        if project_name is not None:
            project_dirs = [self.discovery.project_dir(project_name)]
        else:
            project_dirs = self.discovery.list_projects()

        hits: list[SearchHit] = []
        for project_dir in project_dirs:
            for file_path in self.discovery.session_files_in(project_dir):
                remaining = None if limit is None else limit - len(hits)
                if remaining is not None and remaining <= 0:
                    return hits
                reconstructed = self.load_session(file_path, project_dir.name)
                for match in search_messages(reconstructed.messages, query, filter_type, remaining):
                    hits.append(
                        SearchHit(
                            session_id=reconstructed.session.session_id,
                            project_name=project_dir.name,
                            position=match.position,
                            match_count=match.match_count,
                            message=match.message,
                        )
                    )
        return hits

    # ==========================================================================
    # Recent edits
    # ==========================================================================

    def get_recent_edits(self, project_name: str) -> RecentEditsResult:
        """
        Latest recorded Edit/MultiEdit/Write change per file across a project's sessions.

        Raises:
            ProjectNotFoundError: If the project directory does not exist
        """
        files = self.discovery.list_session_files(project_name)
        return collect_recent_edits(
            (self.discovery.read_source(f, project_name) for f in files),
            self.error_predicate,
        )

    # ==========================================================================
    # Internals
    # ==========================================================================

    def _digest(self, reconstructed: ReconstructedSession) -> SessionDigest:
        return digest_session(reconstructed, self.error_predicate)

    def _load_one(self, file_path: Path, project_name: str) -> SessionResult:
        reconstructed = self.load_session(file_path, project_name)
        return SessionResult(reconstructed=reconstructed, digest=self._digest(reconstructed))

    def _load_project(self, project_name: str) -> list[SessionResult]:
        return self._load_files(self.discovery.list_session_files(project_name), project_name)

    def _load_files(self, files: Sequence[Path], project_name: str) -> list[SessionResult]:
        """Reconstruct and digest files, in parallel when max_workers > 1. Results keep input order."""
        if self.max_workers <= 1 or len(files) <= 1:
            return [self._load_one(f, project_name) for f in files]

        logger.debug('Reconstructing %d files with %d workers', len(files), self.max_workers)
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            return list(executor.map(lambda f: self._load_one(f, project_name), files))
