"""
Shared embed builders for the league bot.

Keeps rendering of rankings, submissions and confirmations consistent
across cogs and views.
"""

import discord
from datetime import datetime, timezone
from typing import List, Optional

from league_bot.constants import UIConstants
from league_bot.data_models.leaderboard import RankedPlayer
from league_bot.data_models.match import ConfirmationResult
from league_bot.database.models import Match, MatchStatus
from league_bot.utils.elo import EloCalculator


STATUS_LABELS = {
    MatchStatus.SUBMITTED: "⏳ Awaiting confirmation",
    MatchStatus.CONFIRMED: "✅ Confirmed",
    MatchStatus.DISPUTED: "⚠️ Disputed",
    MatchStatus.CANCELLED: "🚫 Cancelled",
    MatchStatus.NULLIFIED: "↩️ Nullified",
}


def build_ranking_embed(title: str, players: List[RankedPlayer],
                        highlight_user_id: Optional[int] = None,
                        footer: Optional[str] = None) -> discord.Embed:
    """
    Build a ranking list, one line per player.

    The highlighted player (the caller in /rating) is shown in bold.
    """
    lines = []
    for player in players:
        name = player.display_name
        if player.user_id == highlight_user_id:
            name = f"**{name}**"
        lines.append(f"`#{player.rank:>3}` {name}: {player.rating:,}")

    color = UIConstants.GOLD_RANK_COLOR if players and players[0].rank == 1 else UIConstants.DEFAULT_EMBED_COLOR
    embed = discord.Embed(
        title=f"{UIConstants.TROPHY_EMOJI} {title}",
        description="\n".join(lines) or "No ranked players yet.",
        color=color
    )
    if footer:
        embed.set_footer(text=footer)
    return embed


def build_submission_embed(match: Match, submitter: discord.abc.User,
                           opponent: discord.abc.User) -> discord.Embed:
    winner, loser = (submitter, opponent) if match.result else (opponent, submitter)
    probability = EloCalculator.calculate_win_probability(match.player_start_rating, match.opponent_start_rating)

    embed = discord.Embed(
        title=f"{UIConstants.SWORDS_EMOJI} Match #{match.id} Submitted",
        description=(
            f"{submitter.mention} reported **{winner.display_name}** beating **{loser.display_name}**.\n\n"
            f"{opponent.mention}, please confirm or dispute this result."
        ),
        color=UIConstants.DEFAULT_EMBED_COLOR,
        timestamp=datetime.now(timezone.utc)
    )
    embed.add_field(
        name="Ratings at submission",
        value=(
            f"{submitter.display_name}: {match.player_start_rating:,}\n"
            f"{opponent.display_name}: {match.opponent_start_rating:,}"
        ),
        inline=True
    )
    embed.add_field(name="Expected win chance", value=f"{submitter.display_name}: {probability:.1f}%", inline=True)
    return embed


def build_confirmation_embed(result: ConfirmationResult, player_name: str, opponent_name: str) -> discord.Embed:
    embed = discord.Embed(
        title=f"✅ Match #{result.match_id} Confirmed",
        color=UIConstants.SUCCESS_COLOR,
        timestamp=datetime.now(timezone.utc)
    )
    embed.add_field(
        name="Rating changes",
        value=(
            f"{player_name}: {result.player_start_rating:,} → {result.player_end_rating:,} "
            f"({EloCalculator.format_rating_change(result.player_delta)})\n"
            f"{opponent_name}: {result.opponent_start_rating:,} → {result.opponent_end_rating:,} "
            f"({EloCalculator.format_rating_change(result.opponent_delta)})"
        ),
        inline=False
    )
    return embed


def build_match_list_embed(title: str, matches: List[Match], viewer_user_id: int,
                           footer: Optional[str] = None) -> discord.Embed:
    """List matches from the viewer's point of view; relationships must be loaded."""
    lines = []
    for match in matches:
        opponent = match.opponent if match.player_id == viewer_user_id else match.player
        won = match.result if match.player_id == viewer_user_id else not match.result
        lines.append(
            f"#{match.id} vs {opponent.display_name}: {'Win' if won else 'Loss'} "
            f"- {STATUS_LABELS[match.status]}"
        )

    embed = discord.Embed(
        title=title,
        description="\n".join(lines) or "No matches.",
        color=UIConstants.DEFAULT_EMBED_COLOR
    )
    if footer:
        embed.set_footer(text=footer)
    return embed


def build_match_info_embed(match: Match) -> discord.Embed:
    """Admin view of a single match with both snapshots."""
    def snapshot(start: Optional[int], end: Optional[int]) -> str:
        if start is None:
            return "-"
        if end is None:
            return f"{start:,} → pending"
        return f"{start:,} → {end:,} ({EloCalculator.format_rating_change(end - start)})"

    embed = discord.Embed(
        title=f"Match #{match.id}",
        description=STATUS_LABELS[match.status],
        color=UIConstants.DEFAULT_EMBED_COLOR
    )
    embed.add_field(
        name=f"{match.player.display_name} (submitter)",
        value=f"{'Won' if match.result else 'Lost'}\n{snapshot(match.player_start_rating, match.player_end_rating)}",
        inline=True
    )
    embed.add_field(
        name=match.opponent.display_name,
        value=f"{'Lost' if match.result else 'Won'}\n{snapshot(match.opponent_start_rating, match.opponent_end_rating)}",
        inline=True
    )
    embed.set_footer(text=f"Created {match.created_at:%Y-%m-%d %H:%M} UTC")
    return embed


async def send_embed(interaction: discord.Interaction, embed: discord.Embed, ephemeral: bool = False):
    """Reply with an embed whether or not the interaction was already deferred."""
    if interaction.response.is_done():
        await interaction.followup.send(embed=embed, ephemeral=ephemeral)
    else:
        await interaction.response.send_message(embed=embed, ephemeral=ephemeral)
