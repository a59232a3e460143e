"""Reads the NUnit 3 result files the editor writes for `-runTests`."""

from __future__ import annotations

import enum
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional

from .core.exceptions import UcomError


class TestResultsError(UcomError):
    """Raised when a test results file is missing or malformed."""


class TestOutcome(str, enum.Enum):
    PASSED = "Passed"
    FAILED = "Failed"
    INCONCLUSIVE = "Inconclusive"
    SKIPPED = "Skipped"
    INVALID = "Invalid"

    @classmethod
    def parse(cls, value: Optional[str]) -> "TestOutcome":
        # Suites whose children failed report "Failed(Child)".
        text = (value or "").split("(", 1)[0].strip()
        try:
            return cls(text)
        except ValueError:
            return cls.INVALID


@dataclass(frozen=True)
class TestCase:
    full_name: str
    outcome: TestOutcome
    duration: float = 0.0
    message: str = ""

    @property
    def passed(self) -> bool:
        return self.outcome is TestOutcome.PASSED


@dataclass(frozen=True)
class TestRun:
    outcome: TestOutcome
    total: int
    passed: int
    failed: int
    inconclusive: int
    skipped: int
    asserts: int
    duration: float
    test_cases: list[TestCase] = field(default_factory=list)

    def failures(self) -> list[TestCase]:
        return [case for case in self.test_cases if not case.passed]

    def summary(self) -> str:
        return (
            f"{self.total} total; {self.passed} passed; {self.failed} failed; "
            f"{self.inconclusive} inconclusive; {self.skipped} skipped; "
            f"{self.asserts} asserts; finished in {self.duration:.2f}s"
        )


def _int_attr(element: ET.Element, name: str) -> int:
    value = element.get(name, "0")
    try:
        return int(value)
    except ValueError as exc:
        raise TestResultsError(f"test-run attribute {name!r} is not an integer: {value!r}") from exc


def _float_attr(element: ET.Element, name: str) -> float:
    try:
        return float(element.get(name, "0") or 0)
    except ValueError:
        return 0.0


def _cases(root: ET.Element) -> Iterable[TestCase]:
    for case in root.iter("test-case"):
        message = case.findtext("failure/message") or case.findtext("reason/message") or ""
        yield TestCase(
            full_name=case.get("fullname") or case.get("name") or "",
            outcome=TestOutcome.parse(case.get("result")),
            duration=_float_attr(case, "duration"),
            message=message.strip(),
        )


def parse_test_results(text: str) -> TestRun:
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise TestResultsError(f"Invalid test results XML: {exc}") from exc
    if root.tag != "test-run":
        raise TestResultsError(f"Expected a <test-run> document, found <{root.tag}>")
    return TestRun(
        outcome=TestOutcome.parse(root.get("result")),
        total=_int_attr(root, "total"),
        passed=_int_attr(root, "passed"),
        failed=_int_attr(root, "failed"),
        inconclusive=_int_attr(root, "inconclusive"),
        skipped=_int_attr(root, "skipped"),
        asserts=_int_attr(root, "asserts"),
        duration=_float_attr(root, "duration"),
        test_cases=list(_cases(root)),
    )


def read_test_results(path: Path) -> TestRun:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise TestResultsError(f"Failed to read test results {path}: {exc}") from exc
    return parse_test_results(text)


__all__ = [
    "TestCase",
    "TestOutcome",
    "TestResultsError",
    "TestRun",
    "parse_test_results",
    "read_test_results",
]
