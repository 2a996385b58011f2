"""
Case number generation.

Case numbers look like CASE-2025-000017: a fixed prefix, the
calendar year, and a six-digit sequence that restarts at 1 each
year simply because no earlier numbers exist for a new year.
"""

import re

from sqlalchemy import select
from sqlalchemy.orm import Session

from governance_core.config import get_settings
from governance_core.models.proposal import Proposal

SEQUENCE_DIGITS = 6
MAX_SEQUENCE = 10 ** SEQUENCE_DIGITS - 1

_CASE_NUMBER_RE = re.compile(r"^(?P<prefix>[A-Z]+)-(?P<year>\d{4})-(?P<seq>\d{6})$")


def format_case_number(year: int, sequence: int, prefix: str | None = None) -> str:
    prefix = prefix or get_settings().CASE_NUMBER_PREFIX
    if not 1 <= sequence <= MAX_SEQUENCE:
        raise ValueError(f"Case sequence {sequence} out of range")
    return f"{prefix}-{year}-{sequence:0{SEQUENCE_DIGITS}d}"


def parse_case_number(value: str) -> tuple[int, int] | None:
    """Return (year, sequence), or None if value is not a case number."""
    match = _CASE_NUMBER_RE.match(value or "")
    if not match:
        return None
    return int(match.group("year")), int(match.group("seq"))


class CaseNumberGenerator:
    """
    Allocates the next case number for a year.

    Must run in the same session as the proposal insert. The unique
    constraint on proposals.case_number rejects the loser if two
    creators pick the same number concurrently.
    """

    def __init__(self, db: Session, prefix: str | None = None):
        self.db = db
        self.prefix = prefix or get_settings().CASE_NUMBER_PREFIX

    def current_max_sequence(self, year: int) -> int:
        """
        Highest sequence already used in a year, 0 if none.

        LIKE narrows the scan to the year's prefix; the regex then
        drops anything that is not exactly PREFIX-YYYY-NNNNNN.
        """
        year_prefix = f"{self.prefix}-{year}-"
        pattern = re.compile(rf"^{re.escape(year_prefix)}(\d{{{SEQUENCE_DIGITS}}})$")

        case_numbers = self.db.execute(
            select(Proposal.case_number).where(
                Proposal.case_number.like(f"{year_prefix}%")
            )
        ).scalars().all()

        sequences = [
            int(match.group(1))
            for match in (pattern.match(value) for value in case_numbers)
            if match
        ]
        return max(sequences, default=0)

    def generate(self, year: int) -> str:
        next_sequence = self.current_max_sequence(year) + 1
        return format_case_number(year, next_sequence, prefix=self.prefix)
