"""Tests for cancellation options and results."""

import re

import pytest

from tssc_ci.models.cancel import (
    MAX_CONCURRENCY,
    BatchReport,
    CancelDetail,
    CancelOptions,
    CancelResult,
    clamp_concurrency,
)


@pytest.mark.parametrize(
    ("requested", "expected"),
    [(0, 1), (-3, 1), (1, 1), (10, 10), (16, 16), (100, MAX_CONCURRENCY)],
)
def test_clamp_concurrency(requested: int, expected: int) -> None:
    """Concurrency is clamped into 1..16."""
    assert clamp_concurrency(requested) == expected


class TestCancelOptions:
    """Tests for CancelOptions."""

    def test_normalized_applies_default(self) -> None:
        """A missing concurrency takes the adaptor default."""
        assert CancelOptions().normalized(3).concurrency == 3

    def test_normalized_clamps_explicit_value(self) -> None:
        """An explicit concurrency is clamped too."""
        assert CancelOptions(concurrency=50).normalized().concurrency == 16

    def test_normalized_freezes_patterns(self) -> None:
        """Exclude patterns become a tuple."""
        options = CancelOptions(exclude_patterns=[re.compile("nightly")])

        assert isinstance(options.normalized().exclude_patterns, tuple)


def detail(run_key: int, outcome: str) -> CancelDetail:
    return CancelDetail(
        run_key=run_key,
        job_key="my-svc",
        display_name=f"#{run_key}",
        pre_status="running",
        outcome=outcome,  # type: ignore[arg-type]
    )


class TestCancelResult:
    """Tests for CancelResult."""

    def test_balanced(self) -> None:
        """Counts and details add up to the total."""
        result = CancelResult(
            total=2,
            cancelled=1,
            failed=1,
            details=(detail(1, "cancelled"), detail(2, "failed")),
        )

        assert result.balanced

    def test_unbalanced_when_details_missing(self) -> None:
        """Counts alone do not balance a result without details."""
        assert not CancelResult(total=1, cancelled=1).balanced

    def test_systemic_failure(self) -> None:
        """Any systemic batch marks the whole result."""
        batches = (
            BatchReport(index=1, size=2, cancelled=2, failed=0, skipped=0),
            BatchReport(
                index=2, size=1, cancelled=0, failed=1, skipped=0, systemic=True
            ),
        )

        assert CancelResult(batches=batches).systemic_failure
        assert not CancelResult(batches=batches[:1]).systemic_failure
