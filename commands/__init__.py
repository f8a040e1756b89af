"""Slash command layer – command routing, dialogs and reply formatting."""

from commands.handlers import (
    CommandHandler,
    DialogSubmission,
    RECORD_DIALOG,
    SlashCommand,
    format_completed,
    format_leaderboard,
    format_unmet,
)

__all__ = [
    "CommandHandler",
    "DialogSubmission",
    "RECORD_DIALOG",
    "SlashCommand",
    "format_completed",
    "format_leaderboard",
    "format_unmet",
]
