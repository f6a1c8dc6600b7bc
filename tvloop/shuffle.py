"""
Constrained shuffle: reproducible block order with no show back to back

The first and last blocks count as adjacent since the schedule loops.
"""

import logging

from .models import Block

logger = logging.getLogger(__name__)

DEFAULT_SEED = 20260212
MAX_REPAIR_PASSES = 5

_MASK = 0xFFFFFFFF


def _imul(a: int, b: int) -> int:
    return (a * b) & _MASK


class Mulberry32:
    """
    Mulberry32 PRNG with 32-bit arithmetic

    Yields the same sequence as the common JavaScript implementation for
    the same seed, so schedules stay reproducible across rewrites.
    """

    def __init__(self, seed: int = DEFAULT_SEED):
        self.state = seed & _MASK

    def __call__(self) -> float:
        """Next float in [0, 1)"""
        self.state = (self.state + 0x6D2B79F5) & _MASK
        s = self.state
        t = _imul(s ^ (s >> 15), 1 | s)
        t = ((t + _imul(t ^ (t >> 7), 61 | t)) & _MASK) ^ t
        return ((t ^ (t >> 14)) & _MASK) / 4294967296


def round_robin(blocks: list[Block]) -> list[Block]:
    """Interleave the blocks one show at a time, shows in first-seen order"""
    queues: dict[str, list[Block]] = {}
    for block in blocks:
        queues.setdefault(block.show, []).append(block)

    result = []
    pending = [list(q) for q in queues.values()]
    while any(pending):
        for queue in pending:
            if queue:
                result.append(queue.pop(0))
    return result


def count_violations(blocks: list[Block]) -> int:
    """Adjacent same-show block pairs, including the wrap-around pair"""
    if len(blocks) < 2:
        return 0
    violations = sum(
        1 for a, b in zip(blocks, blocks[1:]) if a.show == b.show
    )
    if len(blocks) > 2 and blocks[-1].show == blocks[0].show:
        violations += 1
    return violations


def _local_violations(seq: list[Block], positions: tuple[int, ...]) -> int:
    pairs = set()
    for pos in positions:
        if pos > 0:
            pairs.add(pos - 1)
        if pos < len(seq) - 1:
            pairs.add(pos)
    return sum(1 for p in pairs if seq[p].show == seq[p + 1].show)


def _try_swap(seq: list[Block], i: int, j: int) -> bool:
    """Swap i and j if that clears the (i-1, i) pair without adding violations"""
    before = _local_violations(seq, (i, j))
    seq[i], seq[j] = seq[j], seq[i]
    if seq[i].show != seq[i - 1].show and _local_violations(seq, (i, j)) < before:
        return True
    seq[i], seq[j] = seq[j], seq[i]
    return False


def _repair_pass(seq: list[Block]) -> int:
    swaps = 0
    for i in range(1, len(seq)):
        if seq[i].show != seq[i - 1].show:
            continue
        # nearest block ahead first, then behind as a fallback
        if any(_try_swap(seq, i, j) for j in range(i + 1, len(seq))):
            swaps += 1
        elif any(_try_swap(seq, i, j) for j in range(i - 2, -1, -1)):
            swaps += 1
    return swaps


def _repair_wrap(seq: list[Block]) -> bool:
    last = len(seq) - 1
    if last < 2 or seq[last].show != seq[0].show:
        return False
    before = count_violations(seq)
    for j in range(last - 1, 0, -1):
        if seq[j].show == seq[0].show:
            continue
        seq[last], seq[j] = seq[j], seq[last]
        if count_violations(seq) < before:
            return True
        seq[last], seq[j] = seq[j], seq[last]
    return False


def _greedy_rebuild(seq: list[Block], rng: Mulberry32) -> list[Block]:
    """
    Rebuild the order one block at a time from the show with the most
    blocks left, never the show just placed

    Each show keeps the relative order of its blocks in seq and the rng
    breaks ties between equally large shows. Whenever no show owns more
    than half of the blocks the result has no adjacent pair, the
    wrap-around pair included.
    """
    queues: dict[str, list[Block]] = {}
    for block in seq:
        queues.setdefault(block.show, []).append(block)

    result: list[Block] = []
    previous = None
    while len(result) < len(seq):
        open_shows = [s for s, q in queues.items() if q and s != previous]
        if not open_shows:
            # only the previous show is left
            open_shows = [previous]
        most = max(len(queues[s]) for s in open_shows)
        tied = [s for s in open_shows if len(queues[s]) == most]
        show = tied[int(rng() * len(tied))] if len(tied) > 1 else tied[0]
        result.append(queues[show].pop(0))
        previous = show

    _close_loop(result)
    return result


def _close_loop(seq: list[Block]):
    """Move a last block that repeats the first show between two other shows"""
    if len(seq) < 3 or seq[-1].show != seq[0].show:
        return
    show = seq[-1].show
    for i in range(1, len(seq) - 1):
        if seq[i - 1].show != show and seq[i].show != show:
            seq.insert(i, seq.pop())
            return


def constrained_shuffle(blocks: list[Block], rng: Mulberry32) -> list[Block]:
    """
    Order blocks so that no two consecutive blocks share a show

    Steps: round-robin interleave, seeded Fisher-Yates, linear repair
    (forward search then backward), wrap-around repair. When swaps leave
    violations behind, the order is rebuilt greedily and the better of
    the two is kept. Violations are minimized, not guaranteed away: a
    show owning more than half of the blocks cannot be fully separated.
    """
    result = round_robin(blocks)

    for i in range(len(result) - 1, 0, -1):
        j = int(rng() * (i + 1))
        result[i], result[j] = result[j], result[i]

    for _ in range(MAX_REPAIR_PASSES):
        swaps = _repair_pass(result)
        if _repair_wrap(result):
            swaps += 1
        if not swaps or not count_violations(result):
            break

    remaining = count_violations(result)
    if remaining:
        rebuilt = _greedy_rebuild(result, rng)
        if count_violations(rebuilt) < remaining:
            result = rebuilt
            remaining = count_violations(result)

    if remaining:
        logger.warning(f"Shuffle left {remaining} adjacency violations")
    return result
