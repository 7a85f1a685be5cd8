"""MechTrack kernel data models."""

from mechtrack_kernel.models.catalog import (
    ComponentCategory,
    ComponentType,
    RiskTier,
    SkillRequirement,
    StepDefinition,
)
from mechtrack_kernel.models.config import (
    KernelConfig,
    MatcherConfig,
    RiskConfig,
    StalenessConfig,
)
from mechtrack_kernel.models.execution import (
    Proof,
    ProofKind,
    StepCompletion,
    StepExecution,
    StepStatus,
    StepTransition,
    WorkflowComplete,
    WorkflowProgress,
)
from mechtrack_kernel.models.matching import MatchCandidate, ScoreBreakdown
from mechtrack_kernel.models.operator import Operator, OperatorStatus
from mechtrack_kernel.models.risk import RiskAssessment
from mechtrack_kernel.models.task import Assignment, Task, TaskPriority, TaskStatus

__all__ = [
    "Assignment",
    "ComponentCategory",
    "ComponentType",
    "KernelConfig",
    "MatchCandidate",
    "MatcherConfig",
    "Operator",
    "OperatorStatus",
    "Proof",
    "ProofKind",
    "RiskAssessment",
    "RiskConfig",
    "RiskTier",
    "ScoreBreakdown",
    "SkillRequirement",
    "StalenessConfig",
    "StepCompletion",
    "StepDefinition",
    "StepExecution",
    "StepStatus",
    "StepTransition",
    "Task",
    "TaskPriority",
    "TaskStatus",
    "WorkflowComplete",
    "WorkflowProgress",
]
