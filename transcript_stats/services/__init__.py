"""Service layer for transcript decoding, reconstruction and statistics."""

from transcript_stats.services.decoder import decode_line, iter_records
from transcript_stats.services.discovery import TranscriptDiscoveryService
from transcript_stats.services.normalizer import normalize_record
from transcript_stats.services.recent_edits import collect_recent_edits, extract_file_edits
from transcript_stats.services.reconstruct import (
    MessageIndex,
    ReconstructedSession,
    SessionReconstructorService,
    SessionSource,
    paginate,
)
from transcript_stats.services.rollup import (
    SessionDigest,
    StatsAccumulator,
    build_global_summary,
    build_project_summary,
    compare_session,
    digest_session,
)
from transcript_stats.services.search import search_messages
from transcript_stats.services.stats import TranscriptStatsService
from transcript_stats.services.tool_calls import default_error_predicate, extract_tool_calls
from transcript_stats.services.usage import summarize_tokens

__all__ = [
    'decode_line',
    'iter_records',
    'normalize_record',
    'SessionSource',
    'SessionReconstructorService',
    'ReconstructedSession',
    'MessageIndex',
    'paginate',
    'summarize_tokens',
    'default_error_predicate',
    'extract_tool_calls',
    'SessionDigest',
    'StatsAccumulator',
    'digest_session',
    'build_project_summary',
    'build_global_summary',
    'compare_session',
    'search_messages',
    'extract_file_edits',
    'collect_recent_edits',
    'TranscriptDiscoveryService',
    'TranscriptStatsService',
]
