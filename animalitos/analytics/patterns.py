from typing import Iterable
from animalitos.core.registry import GREEN


def runs(labels: Iterable[str], k: int = 3):
    """Maximal segments of equal labels with length >= k as (start, end, label, length)."""
    labels = list(labels)
    out = []
    if not labels:
        return out
    cur = labels[0]
    start = 0
    for i in range(1, len(labels) + 1):
        if i < len(labels) and labels[i] == cur:
            continue
        seg_len = i - start
        if seg_len >= k:
            out.append((start, i - 1, cur, seg_len))
        if i < len(labels):
            cur = labels[i]
            start = i
    return out


def head_run(colors: Iterable[str]) -> tuple[str | None, int]:
    """Color and length of the run that starts at the newest entry."""
    segs = runs(colors, k=1)
    if not segs:
        return None, 0
    _, _, color, length = segs[0]
    return color, length


def alternation_rate(colors: Iterable[str]) -> float:
    # green on either side of a pair is not counted as an alternation
    colors = list(colors)
    if len(colors) < 2:
        return 0.0
    changes = sum(
        1 for a, b in zip(colors, colors[1:])
        if a != b and GREEN not in (a, b)
    )
    return changes / (len(colors) - 1)
