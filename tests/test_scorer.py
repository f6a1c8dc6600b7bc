from tvloop.models import PackType, SourceCandidate
from tvloop.scorer import ScoringWeights, SourceScorer


def candidate(title, seeders=10, pack_type=None):
    return SourceCandidate(
        title=title,
        size=2 * 1024**3,
        seeders=seeders,
        locator=f"magnet:?dn={title}",
        pack_type=pack_type,
    )


def test_pack_tiers_dominate_quality(american_dad):
    scorer = SourceScorer()
    series = candidate("American Dad Complete 480p", seeders=1, pack_type=PackType.SERIES)
    season = candidate(
        "American Dad S01 2160p REMUX x265 WEB-DL", seeders=5000, pack_type=PackType.SEASON
    )
    single = candidate("American Dad S01E01 2160p REMUX x265 WEB-DL", seeders=5000)

    ranked = scorer.rank([single, season, series], american_dad)

    assert [c.title for c in ranked] == [series.title, season.title, single.title]


def test_preferred_tag_beats_resolution(office):
    scorer = SourceScorer()
    tagged = candidate("The Office Superfan Episodes S02 720p", pack_type=PackType.SEASON)
    plain = candidate("The Office S02 2160p REMUX", pack_type=PackType.SEASON)

    assert scorer.score(tagged, office) > scorer.score(plain, office)


def test_quality_markers_are_additive(american_dad):
    scorer = SourceScorer()
    base = scorer.score(candidate("American Dad S01E01 1080p", seeders=0), american_dad)
    full = scorer.score(
        candidate("American Dad S01E01 1080p BluRay x265 WEB-DL", seeders=0), american_dad
    )
    weights = ScoringWeights()
    assert base == 1080
    assert full - base == weights.high_fidelity + weights.efficient_codec + weights.web_release


def test_seeders_are_capped(american_dad):
    scorer = SourceScorer()
    few = scorer.score(candidate("American Dad S01E01", seeders=10), american_dad)
    many = scorer.score(candidate("American Dad S01E01", seeders=100_000), american_dad)
    assert few == 20
    assert many == ScoringWeights().seeder_cap


def test_rank_sets_scores_and_keeps_order_on_ties(american_dad):
    scorer = SourceScorer()
    first = candidate("American Dad S01E01 A", seeders=3)
    second = candidate("American Dad S01E01 B", seeders=3)

    ranked = scorer.rank([first, second], american_dad)

    assert ranked == [first, second]
    assert first.score == second.score == 6
