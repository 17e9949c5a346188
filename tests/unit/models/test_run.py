"""Tests for the normalized run model."""

from tssc_ci.models.run import Run
from tssc_ci.testing.factories import RunFactory


class TestRun:
    """Tests for Run."""

    def test_identity_ignores_observed_fields(self) -> None:
        """Two observations of the same run are equal and hash alike."""
        first = Run(provider="jenkins", job_key="my-svc", run_key=17, status="running")
        later = Run(provider="jenkins", job_key="my-svc", run_key=17, status="success")

        assert first == later
        assert hash(first) == hash(later)
        assert len({first, later}) == 1

    def test_identity_differs_across_jobs(self) -> None:
        """The same number in another job is another run."""
        source = Run(provider="jenkins", job_key="my-svc", run_key=3)
        gitops = Run(provider="jenkins", job_key="my-svc-gitops", run_key=3)

        assert source != gitops
        assert source.identity == ("jenkins", "my-svc", 3)

    def test_finished(self) -> None:
        """Only success and failure are terminal."""
        for status in ("success", "failure"):
            assert RunFactory.build(status=status).finished
        for status in ("pending", "running", "unknown"):
            assert not RunFactory.build(status=status).finished

    def test_describe_prefers_display_name(self) -> None:
        """Log labels use the display name when there is one."""
        named = Run(
            provider="tekton",
            job_key="my-svc",
            run_key="my-svc-on-pull-request-x7k2p",
            display_name="my-svc-on-pull-request-x7k2p",
        )
        numbered = Run(provider="gitlab-ci", job_key="org/my-svc", run_key=99)

        assert named.describe() == "tekton:my-svc#my-svc-on-pull-request-x7k2p"
        assert numbered.describe() == "gitlab-ci:org/my-svc#99"
