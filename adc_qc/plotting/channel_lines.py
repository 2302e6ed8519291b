from __future__ import annotations

from typing import List, Sequence

from adc_qc.calculation.objects import IndexRange


def lines_for(ran: IndexRange, modulus: int, pattern: Sequence[int]) -> List[int]:

    """
    Channels inside a range where boundary lines are drawn.

    Parameters
    ----------
    ran : IndexRange
        Drawn channel range.
    modulus : int
        Repeat spacing. Lines are at N*modulus + p for every N >= 0 and every
        p in pattern. If 0, lines are only at the pattern values.
    pattern : sequence of int
        Line offsets.

    Returns
    -------
    list of int
        Sorted, unique channel numbers within [ran.first, ran.last].

    """

    lines = set()
    for off in pattern:
        if modulus == 0:
            if off in ran:
                lines.add(off)
            continue
        # first N with N*modulus + off >= ran.first
        nmin = max(0, -(-(ran.first - off) // modulus))
        ch = nmin * modulus + off
        while ch <= ran.last:
            lines.add(ch)
            ch += modulus
    return sorted(lines)
