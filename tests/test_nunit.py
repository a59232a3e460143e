from pathlib import Path

import pytest

from ucom import nunit

REPORT = """\
<?xml version="1.0" encoding="utf-8"?>
<test-run id="2" testcasecount="3" result="Failed(Child)" total="3" passed="1"
          failed="1" inconclusive="0" skipped="1" asserts="4"
          engine-version="3.5.0.0" start-time="2024-05-01 10:00:00Z" duration="1.234567">
  <test-suite type="Assembly" name="Game.Tests.dll" result="Failed">
    <test-case id="1001" name="Adds" fullname="Game.Tests.MathTests.Adds"
               result="Passed" duration="0.012000" asserts="2" />
    <test-case id="1002" name="Divides" fullname="Game.Tests.MathTests.Divides"
               result="Failed" duration="0.500000" asserts="2">
      <failure>
        <message><![CDATA[  Expected: 2  But was: 3  ]]></message>
      </failure>
    </test-case>
    <test-case id="1003" name="Slow" fullname="Game.Tests.MathTests.Slow"
               result="Skipped" duration="0">
      <reason><message><![CDATA[Ignored on CI]]></message></reason>
    </test-case>
  </test-suite>
</test-run>
"""


def test_parse_reads_totals_and_cases() -> None:
    run = nunit.parse_test_results(REPORT)

    assert run.outcome is nunit.TestOutcome.FAILED
    assert (run.total, run.passed, run.failed, run.skipped, run.asserts) == (3, 1, 1, 1, 4)
    assert [case.full_name for case in run.test_cases] == [
        "Game.Tests.MathTests.Adds",
        "Game.Tests.MathTests.Divides",
        "Game.Tests.MathTests.Slow",
    ]
    divides = run.test_cases[1]
    assert divides.outcome is nunit.TestOutcome.FAILED
    assert divides.duration == pytest.approx(0.5)
    assert divides.message == "Expected: 2  But was: 3"
    assert run.test_cases[2].message == "Ignored on CI"


def test_failures_exclude_passed_cases() -> None:
    run = nunit.parse_test_results(REPORT)
    assert [case.full_name for case in run.failures()] == [
        "Game.Tests.MathTests.Divides",
        "Game.Tests.MathTests.Slow",
    ]


def test_summary_line() -> None:
    run = nunit.parse_test_results(REPORT)
    assert run.summary() == (
        "3 total; 1 passed; 1 failed; 0 inconclusive; 1 skipped; 4 asserts; "
        "finished in 1.23s"
    )


def test_unknown_result_is_invalid() -> None:
    assert nunit.TestOutcome.parse("Cancelled") is nunit.TestOutcome.INVALID
    assert nunit.TestOutcome.parse(None) is nunit.TestOutcome.INVALID
    assert nunit.TestOutcome.parse("Passed") is nunit.TestOutcome.PASSED


@pytest.mark.parametrize(
    "text",
    [
        "<test-run total='1'",
        "<test-suite />",
        "<test-run total='many' />",
    ],
)
def test_malformed_reports_raise(text: str) -> None:
    with pytest.raises(nunit.TestResultsError):
        nunit.parse_test_results(text)


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(nunit.TestResultsError, match="Failed to read test results"):
        nunit.read_test_results(tmp_path / "tests-editmode.xml")
