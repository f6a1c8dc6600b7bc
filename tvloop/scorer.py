"""
Source scoring system for indexer search results
Separates ranking logic from acquisition for better testability
"""

import logging
from dataclasses import dataclass

from .models import PackType, ShowConfig, SourceCandidate
from .parsing import resolution

logger = logging.getLogger(__name__)


@dataclass
class ScoringWeights:
    """Configurable weights for source scoring

    Tier bonuses are far apart so that any series pack outranks any season
    pack, which outranks any individual release, whatever the quality.
    """

    # Tier 1: pack type
    series_pack: int = 100000
    season_pack: int = 50000

    # Tier 2: preferred tags, per matched tag
    preferred_tag: int = 10000

    # Tier 4: encode quality (additive)
    high_fidelity: int = 400
    efficient_codec: int = 200
    web_release: int = 100

    # Tier 5: seeders
    seeder_multiplier: int = 2
    seeder_cap: int = 500


HIGH_FIDELITY_MARKERS = ("remux", "blu-ray", "bluray")
EFFICIENT_CODEC_MARKERS = ("x265", "hevc", "h.265")
WEB_RELEASE_MARKERS = ("web-dl", "webdl")


class SourceScorer:
    """
    Scores indexer candidates for a show

    Uses, in decreasing order of weight:
    - Pack type (series > season > individual)
    - Preferred tags of the show (e.g. an extended cut)
    - Resolution (2160 / 1080 / 720 points)
    - Encode markers (remux/bluray, x265/hevc, web-dl)
    - Seeders, capped
    """

    def __init__(self, weights: ScoringWeights | None = None, verbose: bool = False):
        self.weights = weights or ScoringWeights()
        self.verbose = verbose

    def score(self, candidate: SourceCandidate, show: ShowConfig) -> int:
        """Calculate the score of a single candidate"""
        title = (candidate.title or "").lower()
        score = 0

        score += self._score_pack_type(candidate.pack_type)
        score += self._score_tags(title, show)
        score += resolution(title)
        score += self._score_encode(title)
        score += min(
            (candidate.seeders or 0) * self.weights.seeder_multiplier,
            self.weights.seeder_cap,
        )

        return score

    def rank(
        self, candidates: list[SourceCandidate], show: ShowConfig
    ) -> list[SourceCandidate]:
        """Score every candidate and return them best first"""
        for candidate in candidates:
            candidate.score = self.score(candidate, show)
            if self.verbose:
                logger.info(
                    f"[VERBOSE] Candidate: {candidate.title[:60]} (score: {candidate.score})"
                )
        return sorted(candidates, key=lambda c: c.score, reverse=True)

    def _score_pack_type(self, pack_type: PackType | None) -> int:
        if pack_type == PackType.SERIES:
            return self.weights.series_pack
        if pack_type == PackType.SEASON:
            return self.weights.season_pack
        return 0

    def _score_tags(self, title_lower: str, show: ShowConfig) -> int:
        return sum(
            self.weights.preferred_tag for tag in show.prefer_tags if tag in title_lower
        )

    def _score_encode(self, title_lower: str) -> int:
        score = 0
        if any(marker in title_lower for marker in HIGH_FIDELITY_MARKERS):
            score += self.weights.high_fidelity
        if any(marker in title_lower for marker in EFFICIENT_CODEC_MARKERS):
            score += self.weights.efficient_codec
        if any(marker in title_lower for marker in WEB_RELEASE_MARKERS):
            score += self.weights.web_release
        return score
