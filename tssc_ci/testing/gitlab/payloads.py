"""Payload helpers for GitLab CI API responses in tests."""

from typing import Any


def pipeline(
    *,
    pipeline_id: int = 123456789,
    status: str = "running",
    source: str = "push",
    sha: str = "abc123def456",
    ref: str = "main",
    project: str = "grp/proj",
    created_at: str = "2099-01-01T12:00:00Z",
    updated_at: str = "2099-01-01T12:01:00Z",
) -> dict[str, Any]:
    """Create a pipeline payload for testing.

    Returns a realistic GitLab pipeline API response structure.
    """
    return {
        "id": pipeline_id,
        "iid": 42,
        "project_id": 12345,
        "sha": sha,
        "ref": ref,
        "status": status,
        "source": source,
        "created_at": created_at,
        "updated_at": updated_at,
        "web_url": f"https://gitlab.com/{project}/-/pipelines/{pipeline_id}",
        "before_sha": "0000000000000000000000000000000000000000",
        "tag": False,
        "yaml_errors": None,
        "user": {
            "id": 1,
            "username": "test-user",
            "name": "Test User",
            "state": "active",
        },
        "started_at": created_at,
        "finished_at": updated_at if status in ("success", "failed") else None,
        "duration": 60,
        "queued_duration": 1,
        "coverage": None,
    }


def job(
    *,
    job_id: int,
    name: str = "build",
    stage: str = "build",
    status: str = "success",
) -> dict[str, Any]:
    """Create a pipeline job payload."""
    return {
        "id": job_id,
        "name": name,
        "stage": stage,
        "status": status,
        "ref": "main",
        "tag": False,
        "allow_failure": False,
        "created_at": "2099-01-01T12:00:00Z",
        "web_url": f"https://gitlab.com/grp/proj/-/jobs/{job_id}",
    }
