"""
Block builder: groups each show's episodes into broadcast blocks
"""

import logging

from .models import Block, InventoryEntry
from .parsing import part_number

logger = logging.getLogger(__name__)

BLOCK_SIZES = (3, 4)
TITLE_PART_LOOKAHEAD = 3


def _linked_parts(entries: list[InventoryEntry], index: int) -> int:
    """
    Number of entries after entries[index] that belong to the same story

    A primary descriptor lists its episodes explicitly. Without any
    descriptor the title part numbers are used: a "Part N" pulls in the
    following same-season entries numbered N+1 to N+3.
    """
    current = entries[index]
    following = entries[index + 1 :]

    if current.multi_part is not None:
        if not current.multi_part.is_primary:
            return 0
        members = set(current.multi_part.episode_numbers)
        count = 0
        for entry in following:
            if entry.season != current.season or entry.episode not in members:
                break
            count += 1
        return count

    number = part_number(current.title)
    if not number:
        return 0
    count = 0
    for entry in following:
        next_number = part_number(entry.title)
        if (
            entry.season != current.season
            or not next_number
            or not number < next_number <= number + TITLE_PART_LOOKAHEAD
        ):
            break
        count += 1
    return count


def build_blocks(by_show: dict[str, list[InventoryEntry]]) -> list[Block]:
    """
    Cut every show's (season, episode) ordered entries into blocks of 3, 4, 3, 4...

    The parts of a multi-part story always land in the same block, even
    when that overruns the target size.
    """
    logger.info("Creating episode blocks...")
    blocks: list[Block] = []

    for show, entries in by_show.items():
        index = 0
        size_index = 0
        while index < len(entries):
            block = Block(block_id=f"{show}-{size_index}", show=show)
            target = BLOCK_SIZES[size_index % len(BLOCK_SIZES)]
            while len(block.entries) < target and index < len(entries):
                extra = _linked_parts(entries, index)
                block.entries.extend(entries[index : index + 1 + extra])
                index += 1 + extra
            blocks.append(block)
            size_index += 1

    multi_part = sum(1 for b in blocks for e in b.entries if e.is_multi_part)
    logger.info(f"Created {len(blocks)} blocks total ({multi_part} multi-part entries)")
    return blocks
