"""Data models for title-generation evaluation runs.

Datasets and reports are stored as JSON; every model here round-trips through
``model_dump_json`` / ``model_validate_json`` without loss.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class CaseInput(BaseModel):
    message: str


class Expectations(BaseModel):
    """Criteria a generated title is checked against. Zero disables a bound."""

    title_keywords: List[str] = Field(default_factory=list)
    title_max_len: int = 0
    title_min_words: int = 0
    title_max_words: int = 0
    should_avoid: List[str] = Field(default_factory=list)


class CaseMetadata(BaseModel):
    category: str = ""
    difficulty: str = ""
    tags: List[str] = Field(default_factory=list)


class EvalCase(BaseModel):
    id: str
    input: CaseInput
    expected: Expectations = Field(default_factory=Expectations)
    metadata: CaseMetadata = Field(default_factory=CaseMetadata)
    description: str = ""


class ToolCallRecord(BaseModel):
    tool_name: str
    arguments: Dict[str, Any] = Field(default_factory=dict)


class ActualOutput(BaseModel):
    title: str = ""
    reply: str = ""
    tool_calls: List[ToolCallRecord] = Field(default_factory=list)
    error: Optional[str] = None


class EvalResult(BaseModel):
    test_case_id: str
    passed: bool
    score: float
    details: str = ""
    metrics: Dict[str, Any] = Field(default_factory=dict)
    actual_value: str = ""


class CaseResult(BaseModel):
    test_case: EvalCase
    actual: ActualOutput
    eval_results: List[EvalResult] = Field(default_factory=list)
    overall_pass: bool = False
    duration: float = 0.0  # seconds

    def average_score(self) -> float:
        if not self.eval_results:
            return 0.0
        return sum(r.score for r in self.eval_results) / len(self.eval_results)


class EvalReport(BaseModel):
    dataset_name: str = ""
    start_time: datetime
    end_time: datetime
    duration: float = 0.0  # seconds
    total_tests: int = 0
    passed_tests: int = 0
    failed_tests: int = 0
    average_score: float = 0.0
    test_results: List[CaseResult] = Field(default_factory=list)
