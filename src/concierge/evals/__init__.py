"""Offline evaluation of generated conversation titles."""

from .dataset import (
    default_dataset,
    load_dataset,
    load_report,
    save_dataset,
    save_report,
)
from .evaluators import (
    CompositeEvaluator,
    Evaluator,
    JudgeError,
    LLMJudge,
    PairwiseJudge,
    RuleEvaluator,
    build_evaluators,
)
from .models import (
    ActualOutput,
    CaseInput,
    CaseMetadata,
    CaseResult,
    EvalCase,
    EvalReport,
    EvalResult,
    Expectations,
    ToolCallRecord,
)
from .runner import Runner, format_summary

__all__ = [
    "ActualOutput",
    "CaseInput",
    "CaseMetadata",
    "CaseResult",
    "CompositeEvaluator",
    "EvalCase",
    "EvalReport",
    "EvalResult",
    "Evaluator",
    "Expectations",
    "JudgeError",
    "LLMJudge",
    "PairwiseJudge",
    "Runner",
    "RuleEvaluator",
    "ToolCallRecord",
    "build_evaluators",
    "default_dataset",
    "format_summary",
    "load_dataset",
    "load_report",
    "save_dataset",
    "save_report",
]
