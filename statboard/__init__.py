"""Statboard: leaderboard engine for the game statistics platform."""

__version__ = "0.1.0"
