"""Loading and saving evaluation datasets and reports."""

from pathlib import Path
from typing import List, Optional, Union

from pydantic import TypeAdapter

from .models import CaseInput, CaseMetadata, EvalCase, EvalReport, Expectations

PathLike = Union[str, Path]

_CASES = TypeAdapter(List[EvalCase])


def load_dataset(path: PathLike) -> List[EvalCase]:
    return _CASES.validate_json(Path(path).read_bytes())


def save_dataset(path: PathLike, cases: List[EvalCase]) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(_CASES.dump_json(cases, indent=2))


def load_report(path: PathLike) -> EvalReport:
    return EvalReport.model_validate_json(Path(path).read_bytes())


def save_report(path: PathLike, report: EvalReport) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(report.model_dump_json(indent=2), encoding="utf-8")


def _case(
    case_id: str,
    message: str,
    keywords: List[str],
    category: str,
    difficulty: str,
    description: str,
    min_words: int = 2,
    tags: Optional[List[str]] = None,
) -> EvalCase:
    return EvalCase(
        id=case_id,
        input=CaseInput(message=message),
        expected=Expectations(
            title_keywords=keywords,
            title_max_len=80,
            title_min_words=min_words,
            title_max_words=6,
        ),
        metadata=CaseMetadata(
            category=category, difficulty=difficulty, tags=tags or []
        ),
        description=description,
    )


def default_dataset() -> List[EvalCase]:
    """The built-in title generation cases."""
    return [
        _case(
            "title_01",
            "What is the weather like in Barcelona?",
            ["weather", "Barcelona"],
            "weather",
            "easy",
            "Weather question should generate location-based title",
        ),
        _case(
            "title_02",
            "I'm planning a trip to Paris next week. Can you tell me the weather forecast?",
            ["Paris", "forecast"],
            "weather",
            "medium",
            "Weather forecast should have clear title",
        ),
        _case(
            "title_03",
            "What are the upcoming holidays in Barcelona?",
            ["holiday"],
            "calendar",
            "easy",
            "Holiday check in Catalonia should mention holidays",
        ),
        _case(
            "title_04",
            "Are there any flights from barcelona to paris for next friday?",
            ["flight"],
            "travel",
            "easy",
            "Flight search query should generate travel-focused title",
        ),
        _case(
            "title_05",
            "Hi",
            [],
            "edge_case",
            "easy",
            "Very short greeting should generate appropriate title",
            min_words=1,
            tags=["short_input"],
        ),
    ]
