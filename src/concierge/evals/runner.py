"""Runs title generation over a dataset and scores the results."""

import logging
import time
from datetime import datetime, timezone
from typing import List, Sequence

from .. import Assistant
from ..errors import ConciergeError
from ..models import USER_ROLE, Conversation
from .evaluators import Evaluator
from .models import ActualOutput, CaseResult, EvalCase, EvalReport, EvalResult

logger = logging.getLogger(__name__)

DEFAULT_REPORT_NAME = "Title Generation Evaluation"


class Runner:
    def __init__(self, assistant: Assistant, evaluators: Sequence[Evaluator]):
        self.assistant = assistant
        self.evaluators = list(evaluators)

    async def run(
        self, cases: List[EvalCase], dataset_name: str = DEFAULT_REPORT_NAME
    ) -> EvalReport:
        """Evaluates every case in order. A case that errors is recorded as
        failed and the run carries on."""
        started_at = datetime.now(timezone.utc)
        started = time.perf_counter()
        logger.info("Starting evaluation run", extra={"total_tests": len(cases)})

        results = []
        for index, case in enumerate(cases, start=1):
            logger.info(
                "Running test case %s (%d/%d)", case.id, index, len(cases)
            )
            results.append(await self.run_case(case))

        passed = sum(1 for r in results if r.overall_pass)
        average = sum(r.average_score() for r in results) / len(results) if results else 0.0
        report = EvalReport(
            dataset_name=dataset_name,
            start_time=started_at,
            end_time=datetime.now(timezone.utc),
            duration=time.perf_counter() - started,
            total_tests=len(cases),
            passed_tests=passed,
            failed_tests=len(results) - passed,
            average_score=average,
            test_results=results,
        )
        logger.info(
            "Evaluation run completed: %d/%d passed, average score %.3f",
            report.passed_tests,
            report.total_tests,
            report.average_score,
        )
        return report

    async def run_case(self, case: EvalCase) -> CaseResult:
        conversation = Conversation()
        conversation.add_message(USER_ROLE, case.input.message)

        started = time.perf_counter()
        try:
            title = await self.assistant.title(conversation)
        except ConciergeError as exc:
            logger.error("Test case %s failed: %s", case.id, exc)
            return CaseResult(
                test_case=case,
                actual=ActualOutput(error=str(exc)),
                eval_results=[
                    EvalResult(
                        test_case_id=case.id,
                        passed=False,
                        score=0.0,
                        details=f"Execution failed: title generation failed: {exc}",
                    )
                ],
                overall_pass=False,
                duration=time.perf_counter() - started,
            )
        duration = time.perf_counter() - started

        actual = ActualOutput(title=title)
        evaluations = [await e.evaluate(case, actual) for e in self.evaluators]
        return CaseResult(
            test_case=case,
            actual=actual,
            eval_results=evaluations,
            overall_pass=all(r.passed for r in evaluations),
            duration=duration,
        )


def format_summary(report: EvalReport) -> str:
    """Renders a human-readable summary of a report."""
    rule = "=" * 60
    total = report.total_tests or 1
    lines = [
        rule,
        f"Evaluation Report: {report.dataset_name}",
        rule,
        f"Total tests:    {report.total_tests}",
        f"Passed:         {report.passed_tests} "
        f"({report.passed_tests / total * 100:.1f}%)",
        f"Failed:         {report.failed_tests} "
        f"({report.failed_tests / total * 100:.1f}%)",
        f"Average score:  {report.average_score:.3f}",
        f"Duration:       {report.duration:.2f}s",
        "",
    ]

    failed = [r for r in report.test_results if not r.overall_pass]
    if failed:
        lines += ["Failed Tests:", "-" * 60]
        for result in failed:
            lines += [
                "",
                f"[{result.test_case.id}] {result.test_case.description}",
                f"  Input:    {result.test_case.input.message!r}",
                f"  Title:    {result.actual.title!r}",
                "  Issues:",
            ]
            lines += [
                f"    - [{e.test_case_id}] {e.details} (score: {e.score:.2f})"
                for e in result.eval_results
                if not e.passed
            ]
        lines.append("")

    passed = [r for r in report.test_results if r.overall_pass]
    if passed:
        lines += ["Passed Tests:", "-" * 60]
        lines += [
            f"✓ [{r.test_case.id}] {r.test_case.description} "
            f"(score: {r.average_score():.2f})"
            for r in passed
        ]
    lines.append(rule)
    return "\n".join(lines)
