"""Azure Pipelines provider implementation."""

import base64
import logging
from collections.abc import AsyncGenerator, Mapping, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from urllib.parse import quote

import aiohttp

from tssc_ci.errors import CIError, NotFoundError, raise_for_status
from tssc_ci.git import RepoEvent
from tssc_ci.kube import KubeClient
from tssc_ci.models.run import Run
from tssc_ci.providers.azure.config import AzureConfig
from tssc_ci.providers.azure.models import (
    Build,
    BuildList,
    BuildLogList,
    DefinitionList,
    DefinitionRef,
)
from tssc_ci.providers.base import CIProvider

log = logging.getLogger(__name__)

API_VERSION = "7.1"
IN_FLIGHT_STATES = frozenset(["inProgress", "notStarted", "postponed", "cancelling"])
BUILD_SCAN_LIMIT = "50"


@dataclass(frozen=True, kw_only=True)
class AzureProvider(CIProvider[AzureConfig]):
    """Azure Pipelines provider.

    Runs are builds keyed by their numeric id; the job key is the pipeline
    definition name. Builds cannot be filtered by commit server-side, so
    correlation scans the most recent builds of the definition.
    """

    ci_type = "azure"
    ci_file_path = "azure-pipelines.yml"

    config: AzureConfig
    session: aiohttp.ClientSession = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: AzureConfig, kube: KubeClient
    ) -> AsyncGenerator["AzureProvider", None]:
        """Create provider with managed session lifecycle."""
        # Azure DevOps uses Basic Auth with empty username and PAT as password
        auth_string = f":{config.token.get_secret_value()}"
        auth_bytes = base64.b64encode(auth_string.encode("ascii")).decode("ascii")
        headers = {
            "Authorization": f"Basic {auth_bytes}",
            "Content-Type": "application/json",
        }
        async with aiohttp.ClientSession(
            base_url=config.base_url,
            headers=headers,
        ) as session:
            yield cls(config=config, session=session)

    @property
    def builds_url(self) -> str:
        return f"{quote(self.config.project)}/_apis/build/builds"

    async def get_definition(self, name: str) -> DefinitionRef:
        """Look up a pipeline definition by name.

        Raises:
            NotFoundError: If no definition has that name

        """
        url = f"{quote(self.config.project)}/_apis/build/definitions"
        params = {"name": name, "api-version": API_VERSION}
        async with self.session.get(url, params=params) as response:
            await raise_for_status(response, f"get pipeline definition {name}")
            data = await response.json()
        definitions = DefinitionList.model_validate(data).value
        if not definitions:
            raise NotFoundError(f"Pipeline definition {name} not found")
        return definitions[0]

    async def list_builds(self, definition_name: str) -> Sequence[Build]:
        definition = await self.get_definition(definition_name)
        params = {
            "definitions": str(definition.id),
            "$top": BUILD_SCAN_LIMIT,
            "api-version": API_VERSION,
        }
        async with self.session.get(self.builds_url, params=params) as response:
            await raise_for_status(response, f"list builds of {definition_name}")
            data = await response.json()
        return BuildList.model_validate(data).value

    async def get_build(self, build_id: int) -> Build:
        async with self.session.get(
            f"{self.builds_url}/{build_id}", params={"api-version": API_VERSION}
        ) as response:
            await raise_for_status(response, f"get build {build_id}")
            data = await response.json()
        return Build.model_validate(data)

    async def find_runs(self, event: RepoEvent) -> Sequence[Run]:
        definition_name = event.repository.rstrip("/").rsplit("/", 1)[-1]
        builds = await self.list_builds(definition_name)
        return [build.to_run(definition_name) for build in builds]

    async def refresh(self, run: Run) -> Run:
        build = await self.get_build(int(run.run_key))
        return build.to_run(run.job_key)

    async def fetch_logs(self, run: Run) -> str:
        """Concatenate every log of the build in id order."""
        async with self.session.get(
            f"{self.builds_url}/{run.run_key}/logs", params={"api-version": API_VERSION}
        ) as response:
            await raise_for_status(response, f"list logs of {run.describe()}")
            logs = BuildLogList.model_validate(await response.json()).value

        sections: list[str] = []
        for build_log in sorted(logs, key=lambda item: item.id):
            async with self.session.get(
                f"{self.builds_url}/{run.run_key}/logs/{build_log.id}",
                params={"api-version": API_VERSION},
            ) as response:
                await raise_for_status(response, f"get log {build_log.id}")
                text = await response.text()
            sections.append(f"--- Log {build_log.id} ---\n{text}")
        return "\n".join(sections)

    async def _in_flight_for(self, definition_name: str) -> list[Run]:
        builds = await self.list_builds(definition_name)
        return [
            build.to_run(definition_name)
            for build in builds
            if build.status in IN_FLIGHT_STATES
        ]

    async def list_in_flight(self) -> Sequence[Run]:
        return await self.across_jobs(self._in_flight_for)

    async def _runs_for(self, definition_name: str) -> list[Run]:
        builds = await self.list_builds(definition_name)
        return [build.to_run(definition_name) for build in builds]

    async def discover_runs(self) -> Sequence[Run]:
        return await self.across_jobs(self._runs_for)

    async def cancel_run(self, run: Run) -> None:
        if run.finished:
            log.info("Build %s already finished, nothing to cancel", run.run_key)
            return
        async with self.session.patch(
            f"{self.builds_url}/{run.run_key}",
            params={"api-version": API_VERSION},
            json={"status": "cancelling"},
        ) as response:
            await raise_for_status(response, f"cancel {run.describe()}")
        log.info("Cancelled build %s of %s", run.run_key, run.job_key)

    async def webhook_url(self) -> str:
        raise NotImplementedError("Azure Pipelines runs without a webhook")

    async def trigger_run(
        self, job_key: str, parameters: Mapping[str, str] | None = None
    ) -> Run | None:
        """Queue a run of the pipeline named ``job_key``."""
        definition = await self.get_definition(job_key)
        url = f"{quote(self.config.project)}/_apis/pipelines/{definition.id}/runs"
        payload = {
            "resources": {"repositories": {"self": {"refName": self.config.ref}}},
            "templateParameters": dict(parameters or {}),
        }
        async with self.session.post(
            url, params={"api-version": API_VERSION}, json=payload
        ) as response:
            await raise_for_status(response, f"run pipeline {job_key}")
            data = await response.json()

        run_id = data.get("id")
        if not isinstance(run_id, int):
            raise CIError("Run ID not found in response")

        log.info("Created run %s of pipeline %s", run_id, job_key)
        build = await self.get_build(run_id)
        return build.to_run(job_key)
