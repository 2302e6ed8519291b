from __future__ import annotations

from dataclasses import dataclass

from adc_qc.calculation.config import STATUS_FIELD
from adc_qc.calculation.objects import ChannelData, ChannelHealth, IndexRange


@dataclass(frozen=True)
class NameContext:
    run: int = 0
    subrun: int = 0
    event: int = 0
    chan1: int = 0
    chan2: int = 0
    range_name: str = ''
    range_label: str = ''

    @classmethod
    def for_range(cls, acd: ChannelData, ran: IndexRange) -> 'NameContext':
        return cls(
            run=acd.run,
            subrun=acd.subrun,
            event=acd.event,
            chan1=ran.first,
            chan2=ran.last,
            range_name=ran.name,
            range_label=ran.label,
        )


def substitute(template: str, ctx: NameContext) -> str:

    """
    Replace the %...% fields of a name or title template.

    Fields: %RUN%, %SUBRUN%, %EVENT%, %CHAN1%, %CHAN2%, %CRNAME%, %CRLABEL%.
    Anything else, including %STATUS%, is left as it is.
    """

    replacements = (
        ('%RUN%', str(ctx.run)),
        ('%SUBRUN%', str(ctx.subrun)),
        ('%EVENT%', str(ctx.event)),
        ('%CHAN1%', str(ctx.chan1)),
        ('%CHAN2%', str(ctx.chan2)),
        ('%CRNAME%', ctx.range_name),
        ('%CRLABEL%', ctx.range_label),
    )
    out = template
    for field_name, text in replacements:
        out = out.replace(field_name, text)
    return out


def substitute_status(template: str, health: ChannelHealth, title: bool = False) -> str:
    """Replace %STATUS% with the health label ('Good' style in titles)."""
    return template.replace(STATUS_FIELD, health.title if title else health.label)
