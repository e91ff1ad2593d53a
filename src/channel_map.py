"""
Parser for the channel-to-channel migration map.

The map is a comma-separated list of ``source:target`` pairs, for example
``"stable-v5:stable-v6, rapid-v5:rapid-v6"``.
"""

from typing import Dict

from errors import (
    DuplicateSourceError,
    EmptyChannelNameError,
    InvalidEntryError,
    SelfMigrationError,
)


def parse_channel_migration_map(text: str) -> Dict[str, str]:
    """
    Parse a channel migration map into a source -> target mapping.

    Args:
        text: Comma-separated source:target pairs. Blank input is allowed.

    Returns:
        Dictionary of source channel name to target channel name

    Raises:
        ChannelMapError: If any entry is malformed
    """
    result: Dict[str, str] = {}
    if not text or not text.strip():
        return result

    for pair in text.split(","):
        pair = pair.strip()
        if not pair:
            continue

        if ":" not in pair:
            raise InvalidEntryError(
                f"invalid channel migration map entry: {pair!r} (expected source:target)"
            )

        source, target = (part.strip() for part in pair.split(":", 1))
        if not source or not target:
            raise EmptyChannelNameError(
                f"invalid channel migration map entry: {pair!r} (empty channel name)"
            )

        if source == target:
            raise SelfMigrationError(
                f"channel migration source and target are the same: {source!r}"
            )

        if source in result:
            raise DuplicateSourceError(
                f"duplicate source channel in migration map: {source!r}"
            )

        result[source] = target

    return result
