"""Title evaluators: rule-based checks, LLM-as-judge, and combinations."""

import logging
import re
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from pydantic import BaseModel, Field, ValidationError

from ..llm import LLM
from ..models import SYSTEM_ROLE, USER_ROLE
from .models import ActualOutput, EvalCase, EvalResult

logger = logging.getLogger(__name__)

PASS_THRESHOLD = 0.7
JUDGE_MODEL = "gpt-5"

_EMOJI = re.compile(
    "[\U0001F600-\U0001F64F\U0001F300-\U0001F5FF\U0001F680-\U0001F6FF"
    "\u2600-\u26FF\u2700-\u27BF]"
)


class Evaluator(ABC):
    """Scores an actual output against a case's expectations."""

    name: str = ""

    @abstractmethod
    async def evaluate(self, case: EvalCase, actual: ActualOutput) -> EvalResult:
        pass


class RuleEvaluator(Evaluator):
    """Deterministic checks on length, word count, keywords and format.

    The score starts at 1.0 and loses points per issue. Newlines, avoided
    patterns and blank titles are critical and zero the score.
    """

    name = "rule_based"

    def check(self, case: EvalCase, actual: ActualOutput) -> EvalResult:
        title = actual.title
        expected = case.expected
        metrics = {}
        issues = []
        score = 1.0

        metrics["title_length"] = len(title)
        if expected.title_max_len > 0 and len(title) > expected.title_max_len:
            score -= 0.4
            issues.append(
                f"Title exceeds max length: {len(title)} > {expected.title_max_len}"
            )

        word_count = len(title.split())
        metrics["word_count"] = word_count
        if expected.title_min_words > 0 and word_count < expected.title_min_words:
            score -= 0.3
            issues.append(
                f"Title has too few words: {word_count} < {expected.title_min_words}"
            )
        if expected.title_max_words > 0 and word_count > expected.title_max_words:
            score -= 0.3
            issues.append(
                f"Title has too many words: {word_count} > {expected.title_max_words}"
            )

        if expected.title_keywords:
            lowered = title.lower()
            total = len(expected.title_keywords)
            found = sum(1 for k in expected.title_keywords if k.lower() in lowered)
            rate = found / total
            metrics.update(
                keyword_match_rate=rate, found_keywords=found, total_keywords=total
            )
            if rate == 0:
                score -= 0.5
                issues.append(f"No keywords matched (0/{total})")
            elif rate < 0.5:
                score -= 0.3
                issues.append(f"Low keyword match rate: {rate:.2f}")
            elif rate < 1.0:
                score -= 0.1

        if "\n" in title:
            score = 0.0
            issues.append("Title contains newlines (critical)")

        avoided = [p for p in expected.should_avoid if p.lower() in title.lower()]
        if avoided:
            score = 0.0
            issues.append(f"Title contains avoided patterns (critical): {avoided}")

        if _EMOJI.search(title):
            score -= 0.1
            issues.append("Title contains emojis")

        if title.count("!") + title.count("?") + title.count("...") > 1:
            score -= 0.1
            issues.append("Title has excessive punctuation")

        if not title.strip():
            score = 0.0
            issues.append("Title is empty or whitespace-only")

        score = max(score, 0.0)
        return EvalResult(
            test_case_id=case.id,
            passed=score >= PASS_THRESHOLD,
            score=score,
            details="; ".join(issues) if issues else "Title meets all criteria",
            metrics=metrics,
            actual_value=title,
        )

    async def evaluate(self, case, actual):
        return self.check(case, actual)


class CompositeEvaluator(Evaluator):
    """Averages several evaluators. Passes only if every one of them passes."""

    name = "composite"

    def __init__(self, *evaluators: Evaluator):
        self.evaluators = list(evaluators)

    async def evaluate(self, case, actual):
        if not self.evaluators:
            return EvalResult(
                test_case_id=case.id,
                passed=False,
                score=0.0,
                details="No evaluators configured",
                actual_value=actual.title,
            )

        results = [await e.evaluate(case, actual) for e in self.evaluators]
        average = sum(r.score for r in results) / len(results)
        return EvalResult(
            test_case_id=case.id,
            passed=all(r.passed for r in results) and average >= PASS_THRESHOLD,
            score=average,
            details=" | ".join(
                f"{e.name}: {r.details}" for e, r in zip(self.evaluators, results)
            ),
            metrics={"sub_results": [r.model_dump() for r in results]},
            actual_value=actual.title,
        )


# --- LLM as judge ---
JUDGE_SYSTEM_PROMPT = """You are an expert evaluator assessing the quality of AI-generated conversation titles. You must be consistent and objective in your evaluations.

Your task is to evaluate whether a title appropriately summarizes a user's question or message.

Evaluation criteria (score each 0-10):
1. **Relevance**: Does the title capture the core intent/topic of the user's message?
2. **Conciseness**: Is the title brief (ideally 2-6 words, max 80 characters)?
3. **Clarity**: Is the title clear and understandable without additional context?
4. **Accuracy**: Does the title focus on summarizing what was ASKED, not answering it?

IMPORTANT: You must respond with ONLY a valid JSON object in this EXACT format (no extra text):
{
  "reasoning": "Brief step-by-step analysis covering all 4 criteria",
  "relevance_score": <number 0-10>,
  "conciseness_score": <number 0-10>,
  "clarity_score": <number 0-10>,
  "accuracy_score": <number 0-10>,
  "overall_score": <number 0-10>,
  "passed": <true or false>,
  "issues": ["array", "of", "specific", "issues"]
}

Overall score should be the average of the 4 criteria scores. Pass if overall_score >= 7."""

PAIRWISE_SYSTEM_PROMPT = """You are an expert evaluator comparing conversation titles. Be consistent and objective.

Given a user message and two candidate titles, determine which title better summarizes the message.

Evaluation criteria in order of importance:
1. Relevance: Which captures the core topic better?
2. Conciseness: Which is more brief (prefer 2-6 words)?
3. Clarity: Which is easier to understand?
4. Accuracy: Which better summarizes (not answers) the question?

If both are equal, choose "A".

Respond with ONLY a JSON object in this EXACT format (no extra text):
{
  "winner": "A" or "B",
  "reasoning": "Concise explanation referencing specific criteria"
}"""


class JudgeVerdict(BaseModel):
    reasoning: str = ""
    relevance_score: float = 0
    conciseness_score: float = 0
    clarity_score: float = 0
    accuracy_score: float = 0
    overall_score: float = 0
    passed: bool = False
    issues: List[str] = Field(default_factory=list)


class PairwiseVerdict(BaseModel):
    winner: str
    reasoning: str = ""


class JudgeError(Exception):
    """The judge model could not produce a usable verdict."""


def extract_json(content: str) -> str:
    """Returns the text between the first ``{`` and the last ``}``."""
    start = content.find("{")
    end = content.rfind("}")
    if start == -1 or end == -1 or end < start:
        raise JudgeError(f"Invalid JSON response from LLM judge: {content}")
    return content[start : end + 1]


class _JudgeBase:
    def __init__(self, llm: LLM, model: str = JUDGE_MODEL):
        self.llm = llm
        self.model = model

    async def _ask(self, system_prompt: str, user_prompt: str) -> str:
        messages = [
            {"role": SYSTEM_ROLE, "content": system_prompt},
            {"role": USER_ROLE, "content": user_prompt},
        ]
        try:
            response = await self.llm.generate_response(messages, model=self.model)
        except Exception as exc:
            raise JudgeError(f"LLM evaluation failed: {exc}") from exc
        if self.llm.count_choices(response) == 0:
            raise JudgeError("No response from LLM judge")
        return self.llm.extract_content(response) or ""


class LLMJudge(_JudgeBase, Evaluator):
    """Asks a model to grade the title. Judge failures become failed results."""

    name = "llm_judge"

    async def evaluate(self, case, actual):
        prompt = (
            "Evaluate this title:\n\n"
            f'User\'s message: "{case.input.message}"\n'
            f'Generated title: "{actual.title}"\n\n'
            "Expected criteria:\n"
            f"- Keywords to include: {case.expected.title_keywords}\n"
            f"- Max length: {case.expected.title_max_len} characters\n"
            "- Ideal word count: 2-6 words\n\n"
            "Provide your evaluation in JSON format."
        )
        try:
            content = await self._ask(JUDGE_SYSTEM_PROMPT, prompt)
            verdict = JudgeVerdict.model_validate_json(extract_json(content))
        except (JudgeError, ValidationError) as exc:
            logger.warning("Judge failed for %s: %s", case.id, exc)
            return EvalResult(
                test_case_id=case.id,
                passed=False,
                score=0.0,
                details=str(exc),
                actual_value=actual.title,
            )

        details = verdict.reasoning
        if verdict.issues:
            details += " Issues: " + ", ".join(verdict.issues)
        return EvalResult(
            test_case_id=case.id,
            passed=verdict.passed,
            score=verdict.overall_score / 10.0,
            details=details,
            metrics=verdict.model_dump(exclude={"passed", "issues"}),
            actual_value=actual.title,
        )


class PairwiseJudge(_JudgeBase):
    async def compare(
        self, message: str, title_a: str, title_b: str
    ) -> Tuple[str, str]:
        """Returns ``(winner, reasoning)`` where winner is ``"A"`` or ``"B"``.

        Raises JudgeError if the model's answer cannot be used.
        """
        prompt = (
            f'User message: "{message}"\n\n'
            f'Title A: "{title_a}"\n'
            f'Title B: "{title_b}"\n\n'
            "Which title is better?"
        )
        content = await self._ask(PAIRWISE_SYSTEM_PROMPT, prompt)
        try:
            verdict = PairwiseVerdict.model_validate_json(extract_json(content))
        except ValidationError as exc:
            raise JudgeError(f"failed to parse response: {exc}") from exc
        winner = verdict.winner.strip().upper()
        if winner not in ("A", "B"):
            raise JudgeError(f"unexpected winner: {verdict.winner!r}")
        return winner, verdict.reasoning


def build_evaluators(
    llm: Optional[LLM] = None, rule_only: bool = False, llm_only: bool = False
) -> List[Evaluator]:
    if rule_only and llm_only:
        raise ValueError("rule_only and llm_only are mutually exclusive")
    evaluators: List[Evaluator] = []
    if not llm_only:
        evaluators.append(RuleEvaluator())
    if not rule_only:
        if llm is None:
            raise ValueError("an LLM is required for the judge evaluator")
        evaluators.append(LLMJudge(llm))
    return evaluators
