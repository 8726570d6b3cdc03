"""
Leaderboard constants.

Single source of truth for:
- Page size of every leaderboard window
- The display-name reset marker
- Ranking Key naming (part of the store wire contract)
"""

# ============================================================================
# PAGINATION
# ============================================================================

PAGE_SIZE = 10

# ============================================================================
# DISPLAY
# ============================================================================

# Formatting-reset code inserted between an extra-display prefix and the name.
RESET_MARKER = "§r"

DEFAULT_NAME_FIELD = "name"


# ============================================================================
# RANKING KEYS
# ============================================================================


def ranking_key(entity_type: str, field_key: str) -> str:
    """
    Name of the sorted set holding one metric's ranking.

    Example:
        >>> ranking_key("Player", "tntgames.wins")
        'player.tntgames.wins'
    """
    return f"{entity_type.lower()}.{field_key}"
