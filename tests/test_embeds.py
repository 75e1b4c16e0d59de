from league_bot.constants import UIConstants
from league_bot.data_models.leaderboard import RankedPlayer
from league_bot.data_models.match import ConfirmationResult
from league_bot.utils.embeds import build_confirmation_embed, build_ranking_embed
from league_bot.utils.error_embeds import ErrorEmbeds
from league_bot.utils.league_exceptions import AlreadyPending, LimitExceeded, StoreUnavailable


def _player(user_id, rating, rank, name):
    return RankedPlayer(
        user_id=user_id, external_id=user_id * 10, display_name=name,
        rating=rating, rank=rank, competing=True, matches_played=6
    )


def test_ranking_embed_highlights_caller():
    players = [_player(1, 1600, 1, "Ann"), _player(2, 1500, 2, "Ben")]
    embed = build_ranking_embed("Top Players", players, highlight_user_id=2, footer="footer")

    lines = embed.description.split("\n")
    assert "Ann" in lines[0] and "**Ann**" not in lines[0]
    assert "**Ben**" in lines[1]
    assert "1,600" in lines[0]
    assert embed.footer.text == "footer"
    assert embed.color.value == UIConstants.GOLD_RANK_COLOR


def test_ranking_embed_empty():
    embed = build_ranking_embed("Top Players", [])
    assert embed.description == "No ranked players yet."


def test_confirmation_embed_shows_deltas():
    result = ConfirmationResult(
        match_id=7, player_id=1, opponent_id=2, player_won=True,
        player_start_rating=1500, player_end_rating=1530,
        opponent_start_rating=1500, opponent_end_rating=1480
    )
    embed = build_confirmation_embed(result, "Ann", "Ben")
    value = embed.fields[0].value
    assert "(+30)" in value
    assert "(-20)" in value
    assert "#7" in embed.title


def test_error_embeds_use_category_titles():
    pending = ErrorEmbeds.from_league_error(AlreadyPending(1, 2, 3))
    limit = ErrorEmbeds.from_league_error(LimitExceeded(1, 6))
    store = ErrorEmbeds.from_league_error(StoreUnavailable("submit"))

    assert pending.title == AlreadyPending.title
    assert limit.title == LimitExceeded.title
    assert "6/6" in limit.description
    assert pending.title != limit.title
    assert store.color.value == UIConstants.ERROR_COLOR
