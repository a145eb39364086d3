from __future__ import annotations

import logging
from dataclasses import dataclass

from ..config import MATCHING, MatchingConfig
from ..models import PrimaryGame, SecondaryCandidate
from .utilities import fuzzy_score


@dataclass(frozen=True)
class CandidateScore:
    candidate: SecondaryCandidate
    name_score: int
    total: int


def _lowered(values: tuple[str, ...] | list[str]) -> set[str]:
    return {str(v).strip().lower() for v in values if str(v or "").strip()}


class IdentityResolver:
    """
    Pick the secondary catalog entry that describes the same game as a primary record.

    Each candidate is compared by name (its own name plus alternate names) and gets points
    for independent agreement signals: a strong or merely accepted fuzzy name match, an exact
    case-insensitive name, the release year, a shared platform and a shared developer. The
    best total wins; ties keep the first candidate in search order. A best total below
    `min_total_score` means no match.
    """

    def __init__(self, policy: MatchingConfig = MATCHING):
        self.policy = policy

    def score(self, primary: PrimaryGame, candidate: SecondaryCandidate) -> CandidateScore | None:
        """
        Score one candidate, or None when no name of it is close enough to be considered.
        """
        p = self.policy
        names = [candidate.name, *candidate.alternate_names]
        name_score = max((fuzzy_score(primary.title, n) for n in names if n), default=0)
        if name_score < p.accept_score:
            return None

        total = p.w_name_strong if name_score >= p.strong_score else p.w_name_accepted

        title = primary.title.strip().lower()
        if title and title in _lowered(names):
            total += p.w_exact_name

        year = primary.release_year
        if year is not None and candidate.release_year is not None and year == candidate.release_year:
            total += p.w_year

        if _lowered(primary.platforms) & _lowered(candidate.platforms):
            total += p.w_platform

        if _lowered(primary.developers) & _lowered(candidate.companies):
            total += p.w_company

        return CandidateScore(candidate=candidate, name_score=name_score, total=total)

    def match(
        self, primary: PrimaryGame, candidates: list[SecondaryCandidate]
    ) -> SecondaryCandidate | None:
        best: CandidateScore | None = None
        for cand in candidates:
            scored = self.score(primary, cand)
            if scored is None:
                continue
            # Strictly greater: ties keep discovery order.
            if best is None or scored.total > best.total:
                best = scored

        if best is None:
            logging.info(f"[IDENTITY] No secondary candidate close to '{primary.title}'")
            return None
        if best.total < self.policy.min_total_score:
            logging.info(
                f"[IDENTITY] Rejected '{best.candidate.name}' for '{primary.title}' "
                f"(score {best.total}, name {best.name_score}%)"
            )
            return None
        logging.debug(
            f"[IDENTITY] Matched '{primary.title}' -> '{best.candidate.name}' "
            f"(id={best.candidate.id}, score {best.total}, name {best.name_score}%)"
        )
        return best.candidate
