"""Full-text search over artifact transcripts using SQLite FTS5."""

import logging

from memoirark.db.connection import Database
from memoirark.search.schemas import ArtifactSearchResult, SearchResponse

logger = logging.getLogger(__name__)


class SearchService:
    """Searches short descriptions and transcribed text of every Artifact."""

    def __init__(self, db: Database) -> None:
        self._db = db

    async def search_artifacts(
        self,
        query: str,
        *,
        types: list[str] | None = None,
        source_systems: list[str] | None = None,
        import_id: str | None = None,
        limit: int = 50,
    ) -> SearchResponse:
        fts_query = self._sanitize_query(query)
        if not fts_query:
            return SearchResponse(query=query, results=[], total=0)

        clauses: list[str] = []
        params: list[str | int] = [fts_query]

        if types:
            placeholders = ", ".join("?" for _ in types)
            clauses.append(f"AND a.type IN ({placeholders})")
            params.extend(types)

        if source_systems:
            placeholders = ", ".join("?" for _ in source_systems)
            clauses.append(f"AND a.source_system IN ({placeholders})")
            params.extend(source_systems)

        if import_id:
            clauses.append("AND a.import_id = ?")
            params.append(import_id)

        params.append(limit)
        filter_sql = "\n  ".join(clauses)

        sql = f"""
            SELECT
                a.artifact_id,
                a.type,
                a.source_system,
                a.short_description,
                a.imported_from,
                a.import_id,
                a.created_at,
                snippet(artifacts_fts, -1, '[[mark]]', '[[/mark]]', '...', 40) AS snippet
            FROM artifacts_fts
            JOIN artifacts a ON a.rowid = artifacts_fts.rowid
            WHERE artifacts_fts MATCH ?
              {filter_sql}
            ORDER BY rank
            LIMIT ?
        """

        rows = await self._db.fetchall(sql, tuple(params))
        results = [
            ArtifactSearchResult(
                artifact_id=row["artifact_id"],
                type=row["type"],
                source_system=row["source_system"],
                short_description=row["short_description"],
                imported_from=row["imported_from"],
                import_id=row["import_id"],
                snippet=row["snippet"] or "",
                created_at=row["created_at"],
            )
            for row in rows
        ]
        logger.debug("Artifact search %r: %d results", query, len(results))
        return SearchResponse(query=query, results=results, total=len(results))

    @staticmethod
    def _sanitize_query(raw: str) -> str:
        """Escape user input for safe FTS5 querying.

        Splits into words and double-quotes each, so FTS5 operators in the
        input are matched literally. All terms must be present.
        """
        words = raw.strip().split()
        if not words:
            return ""
        return " ".join('"{}"'.format(w.replace('"', '""')) for w in words)
