"""
Task Matcher: scores and ranks candidate operators against a task.

Behavioral Contract:
- Pure function of (task, operator snapshot): no randomness, no side effects
- Every operator in the snapshot appears in the ranking exactly once
- Ranking is sorted by score descending; ties go to the higher performance
  score, then to the lower operator id
- An empty snapshot yields an empty ranking, not an error
- Never commits an assignment (see AssignmentLedger)
"""

import logging
from typing import Callable, Iterable, List, Optional

from mechtrack_kernel.errors import EmptyCandidatePoolError
from mechtrack_kernel.models.config import MatcherConfig
from mechtrack_kernel.models.matching import MatchCandidate, ScoreBreakdown
from mechtrack_kernel.models.operator import Operator, OperatorStatus
from mechtrack_kernel.models.task import Task

logger = logging.getLogger(__name__)

FALLBACK_REASON = "Solid general capabilities for this task type"


def _normalize(skill: str) -> str:
    return skill.strip().lower()


def skills_overlap(required: str, offered: str) -> bool:
    """Symmetric, case-insensitive substring containment."""
    a, b = _normalize(required), _normalize(offered)
    if not a or not b:
        return False
    return a in b or b in a


def skill_match_fraction(required_skills: List[str], operator_skills: List[str]) -> float:
    """Fraction of required skills found among the operator's skills."""
    required = [r for r in required_skills if r.strip()]
    if not required:
        return 0.0
    matched = sum(
        1 for r in required
        if any(skills_overlap(r, o) for o in operator_skills)
    )
    return matched / len(required)


class TaskMatcher:
    """
    Weighted operator scoring: skill match, availability, performance and
    complexity fit. Weights and thresholds come from MatcherConfig.
    """

    def __init__(self, config: Optional[MatcherConfig] = None):
        self.config = config or MatcherConfig()
        self._reason_rules: List[Callable[[Operator, ScoreBreakdown], Optional[str]]] = []
        self._register_default_reasons()

    def _register_default_reasons(self) -> None:
        self._reason_rules = [
            self._reason_skill,
            self._reason_available,
            self._reason_performance,
            self._reason_online,
        ]

    # --- Scoring components ---

    def skill_component(self, task: Task, operator: Operator) -> float:
        if any(s.strip() for s in task.required_skills):
            return skill_match_fraction(task.required_skills, operator.skills) * 100
        return float(operator.skill_score)

    def availability_component(self, operator: Operator) -> float:
        if operator.is_available:
            return self.config.available_score
        return self.config.busy_score

    def complexity_component(self, task: Task, operator: Operator) -> float:
        cfg = self.config
        target = cfg.complexity_targets[task.priority]
        if abs(operator.skill_score - target) < cfg.complexity_tolerance:
            return cfg.complexity_fit_score
        return cfg.complexity_mismatch_score

    def breakdown(self, task: Task, operator: Operator) -> ScoreBreakdown:
        return ScoreBreakdown(
            skill=self.skill_component(task, operator),
            availability=self.availability_component(operator),
            performance=float(operator.performance_score),
            complexity=self.complexity_component(task, operator),
        )

    def weighted_score(self, breakdown: ScoreBreakdown) -> int:
        cfg = self.config
        total = (
            breakdown.skill * cfg.skill_weight
            + breakdown.availability * cfg.availability_weight
            + breakdown.performance * cfg.performance_weight
            + breakdown.complexity * cfg.complexity_weight
        )
        # Round half up; the weighted sum never goes negative.
        return min(100, int(total + 0.5))

    # --- Reasons ---

    def _reason_skill(self, operator: Operator, b: ScoreBreakdown) -> Optional[str]:
        # Raw rating, not the skill-match component
        if operator.skill_score >= self.config.reason_threshold:
            return "High skill rating matches task requirements"
        return None

    def _reason_available(self, operator: Operator, b: ScoreBreakdown) -> Optional[str]:
        if operator.is_available:
            return "Currently available with no active tasks"
        return None

    def _reason_performance(self, operator: Operator, b: ScoreBreakdown) -> Optional[str]:
        if operator.performance_score >= self.config.reason_threshold:
            return "Excellent track record on similar tasks"
        return None

    def _reason_online(self, operator: Operator, b: ScoreBreakdown) -> Optional[str]:
        if operator.status == OperatorStatus.ONLINE:
            return "Currently online and ready to start"
        return None

    def reasons(self, operator: Operator, breakdown: ScoreBreakdown) -> List[str]:
        found = [r for r in (rule(operator, breakdown) for rule in self._reason_rules) if r]
        return found or [FALLBACK_REASON]

    # --- Ranking ---

    def score(self, task: Task, operator: Operator) -> MatchCandidate:
        """Score a single operator against a task."""
        b = self.breakdown(task, operator)
        score = self.weighted_score(b)
        estimated = None
        if b.skill > 0:
            estimated = round(task.estimated_hours / (b.skill / 100), 1)
        logger.debug(
            "task %s operator %s: skill=%.1f avail=%.0f perf=%.0f cx=%.0f -> %d",
            task.id, operator.id, b.skill, b.availability, b.performance,
            b.complexity, score,
        )
        return MatchCandidate(
            operator_id=operator.id,
            operator_name=operator.name,
            score=score,
            reasons=self.reasons(operator, b),
            breakdown=b,
            performance_score=operator.performance_score,
            estimated_hours=estimated,
        )

    def rank(self, task: Task, operators: Iterable[Operator]) -> List[MatchCandidate]:
        """Rank every operator in the snapshot against the task."""
        candidates = [self.score(task, op) for op in operators]
        candidates.sort(key=lambda c: (-c.score, -c.performance_score, c.operator_id))
        if not candidates:
            logger.info("task %s: empty operator snapshot, no ranking", task.id)
        return candidates

    def recommend(self, task: Task, operators: Iterable[Operator]) -> MatchCandidate:
        """The best-fitting operator, or EmptyCandidatePoolError."""
        ranking = self.rank(task, operators)
        if not ranking:
            raise EmptyCandidatePoolError(task.id)
        return ranking[0]


def rank(
    task: Task,
    operators: Iterable[Operator],
    config: Optional[MatcherConfig] = None,
) -> List[MatchCandidate]:
    """Module-level convenience over TaskMatcher.rank."""
    return TaskMatcher(config).rank(task, operators)
