"""
Status Transition Table.

Mapa autoritativo das mudanças de status permitidas e dos
efeitos colaterais que cada uma exige.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable

from src.core.entities.homologation import Homologation, HomologationStatus as S
from src.core.exceptions import InvalidTransition
from src.core.workflow.linkage import ensure_can_submit


@dataclass(frozen=True)
class TransitionRule:
    """Uma aresta do grafo de status."""
    source: S
    target: S
    sets_date: str | None = None                      # campo de data preenchido na transição
    guard: Callable[[Homologation], None] | None = None

    def side_effects(self, now: datetime) -> dict:
        changes: dict = {"status": self.target}
        if self.sets_date:
            changes[self.sets_date] = now
        return changes


BASE_RULES = (
    TransitionRule(S.DRAFT, S.SUBMITTED, sets_date="submission_date", guard=ensure_can_submit),
    TransitionRule(S.SUBMITTED, S.UNDER_REVIEW),
    TransitionRule(S.UNDER_REVIEW, S.APPROVED, sets_date="review_date"),
    TransitionRule(S.UNDER_REVIEW, S.REJECTED, sets_date="review_date"),
    TransitionRule(S.APPROVED, S.COMPLETED, sets_date="completion_date"),
)

REOPEN_RULE = TransitionRule(S.REJECTED, S.UNDER_REVIEW)


class TransitionTable:
    """
    Lookup puro de transições.

    `allow_reopen_rejected` habilita a aresta rejected → under_review;
    desligado, rejected é terminal.
    """

    def __init__(self, allow_reopen_rejected: bool = False):
        rules = list(BASE_RULES)
        if allow_reopen_rejected:
            rules.append(REOPEN_RULE)
        self._rules: dict[tuple[S, S], TransitionRule] = {
            (r.source, r.target): r for r in rules
        }

    def allowed_targets(self, current: S) -> list[S]:
        return [target for (source, target) in self._rules if source == current]

    def is_terminal(self, current: S) -> bool:
        return not self.allowed_targets(current)

    def check(self, current: S, target: S, homologation: Homologation | None = None) -> TransitionRule:
        """
        Valida a transição e retorna a regra.

        Com `homologation`, também roda o guard da aresta.

        Raises:
            InvalidTransition: aresta inexistente ou guard reprovado.
        """
        rule = self._rules.get((current, target))
        if rule is None:
            raise InvalidTransition(current.value, target.value)
        if rule.guard is not None and homologation is not None:
            rule.guard(homologation)
        return rule
