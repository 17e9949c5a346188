"""Jenkins provider implementation."""

import logging
from collections.abc import AsyncGenerator, Mapping, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from urllib.parse import quote

import aiohttp

from tssc_ci.errors import (
    ExhaustedError,
    InvalidRequestError,
    NotFoundError,
    raise_for_status,
)
from tssc_ci.git import RepoEvent
from tssc_ci.kube import KubeClient
from tssc_ci.models.run import Run
from tssc_ci.polling import Done, KeepWaiting, RetryDecision, run_until
from tssc_ci.providers.base import CIProvider
from tssc_ci.providers.jenkins.config import JenkinsConfig
from tssc_ci.providers.jenkins.credentials import CredentialKind, credential_xml
from tssc_ci.providers.jenkins.models import (
    BUILD_TREE,
    QUEUE_KEY_PREFIX,
    Build,
    Job,
    JobActivity,
    JobInfo,
    Queue,
    QueueItem,
)

log = logging.getLogger(__name__)

JOB_INFO_TREE = "inQueue,buildable,color,lastBuild[number,url]"
QUEUE_TREE = "items[id,inQueueSince,why,task[name,url]]"
XML_HEADERS = {"Content-Type": "application/xml"}
# Jenkins answers state-changing POSTs with a redirect to the affected page.
POST_ACCEPTED = (200, 201, 204, 302)


@dataclass(frozen=True, kw_only=True)
class JenkinsProvider(CIProvider[JenkinsConfig]):
    """Jenkins provider using folder-scoped jobs.

    Builds are run keys; items still waiting in the build queue are exposed as
    pending runs keyed ``queue:<id>`` so they can be waited on and cancelled
    like builds.
    """

    ci_type = "jenkins"
    ci_file_path = "Jenkinsfile"
    supports_branch_filter = False

    config: JenkinsConfig
    session: aiohttp.ClientSession = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: JenkinsConfig, kube: KubeClient
    ) -> AsyncGenerator["JenkinsProvider", None]:
        """Create provider with managed session lifecycle."""
        async with aiohttp.ClientSession(
            base_url=config.base_url.rstrip("/") + "/",
            auth=aiohttp.BasicAuth(
                config.username, config.token.get_secret_value()
            ),
            headers={"Accept": "application/json"},
        ) as session:
            yield cls(config=config, session=session)

    def job_path(self, job_name: str, folder: str | None = None) -> str:
        folder = folder or self.config.folder
        return f"job/{quote(folder, safe='')}/job/{quote(job_name, safe='')}/"

    async def get_job(self, job_name: str) -> Job:
        """Get a job with its most recent builds."""
        params = {"tree": f"{BUILD_TREE}{{0,{self.config.build_scan_limit}}}"}
        async with self.session.get(
            f"{self.job_path(job_name)}api/json", params=params
        ) as response:
            await raise_for_status(response, f"get job {job_name}")
            data = await response.json()
        return Job.model_validate(data)

    async def get_build(self, job_name: str, number: int) -> Build:
        async with self.session.get(
            f"{self.job_path(job_name)}{number}/api/json"
        ) as response:
            await raise_for_status(response, f"get build {job_name}#{number}")
            data = await response.json()
        return Build.model_validate(data)

    async def get_job_info(self, job_name: str) -> JobInfo:
        async with self.session.get(
            f"{self.job_path(job_name)}api/json", params={"tree": JOB_INFO_TREE}
        ) as response:
            await raise_for_status(response, f"get job info {job_name}")
            data = await response.json()
        return JobInfo.model_validate(data)

    async def get_queue(self) -> Queue:
        async with self.session.get(
            "queue/api/json", params={"tree": QUEUE_TREE}
        ) as response:
            await raise_for_status(response, "get build queue")
            data = await response.json()
        return Queue.model_validate(data)

    async def get_queue_item(self, item_id: int) -> QueueItem:
        async with self.session.get(f"queue/item/{item_id}/api/json") as response:
            await raise_for_status(response, f"get queue item {item_id}")
            data = await response.json()
        return QueueItem.model_validate(data)

    async def queued_runs(self, job_name: str) -> list[Run]:
        """Queue items belonging to ``job_name``, as pending runs."""
        path = self.job_path(job_name)
        queue = await self.get_queue()
        return [
            item.to_run(job_name)
            for item in queue.items
            if item.task is not None
            and (item.task.url or "").endswith(path)
        ]

    async def find_runs(self, event: RepoEvent) -> Sequence[Run]:
        """Scan the most recent builds of the job named after the repository."""
        job_name = event.repository.rstrip("/").rsplit("/", 1)[-1]
        job_name = job_name.removesuffix(".git")
        job = await self.get_job(job_name)
        return [build.to_run(job_name) for build in job.builds]

    async def refresh(self, run: Run) -> Run:
        if isinstance(run.run_key, str) and run.run_key.startswith(QUEUE_KEY_PREFIX):
            item = await self.get_queue_item(
                int(run.run_key.removeprefix(QUEUE_KEY_PREFIX))
            )
            if item.executable is None:
                return item.to_run(run.job_key)
            log.info(
                "Queue item %s became build #%s", run.run_key, item.executable.number
            )
            build = await self.get_build(run.job_key, item.executable.number)
            return build.to_run(run.job_key)

        build = await self.get_build(run.job_key, int(run.run_key))
        return build.to_run(run.job_key)

    async def fetch_logs(self, run: Run) -> str:
        if not isinstance(run.run_key, int):
            log.info("Run %s has not started, no logs yet", run.describe())
            return ""
        async with self.session.get(
            f"{self.job_path(run.job_key)}{run.run_key}/logText/progressiveText",
            params={"start": "0"},
        ) as response:
            await raise_for_status(response, f"get logs of {run.describe()}")
            return await response.text()

    async def _in_flight_for(self, job_name: str) -> list[Run]:
        job = await self.get_job(job_name)
        running = [build.to_run(job_name) for build in job.builds if build.building]
        return running + await self.queued_runs(job_name)

    async def list_in_flight(self) -> Sequence[Run]:
        return await self.across_jobs(self._in_flight_for)

    async def _runs_for(self, job_name: str) -> list[Run]:
        job = await self.get_job(job_name)
        builds = [build.to_run(job_name) for build in job.builds]
        return builds + await self.queued_runs(job_name)

    async def discover_runs(self) -> Sequence[Run]:
        """Builds and queue items of both component jobs.

        Every run carries its own job name as ``job_key`` so cancellations are
        routed to the right job.
        """
        return await self.across_jobs(self._runs_for)

    async def cancel_run(self, run: Run) -> None:
        """Stop a running build or remove a queue item."""
        if isinstance(run.run_key, str) and run.run_key.startswith(QUEUE_KEY_PREFIX):
            item_id = run.run_key.removeprefix(QUEUE_KEY_PREFIX)
            async with self.session.post(
                "queue/cancelItem", params={"id": item_id}, allow_redirects=False
            ) as response:
                await raise_for_status(
                    response, f"cancel queue item {item_id}", POST_ACCEPTED
                )
            log.info("Removed queue item %s of %s", item_id, run.job_key)
            return

        if run.finished:
            log.info("Build %s already finished, nothing to stop", run.describe())
            return
        async with self.session.post(
            f"{self.job_path(run.job_key)}{run.run_key}/stop", allow_redirects=False
        ) as response:
            await raise_for_status(response, f"stop {run.describe()}", POST_ACCEPTED)
        log.info("Stopped build %s", run.describe())

    async def webhook_url(self) -> str:
        return f"{self.config.base_url.rstrip('/')}/github-webhook/"

    async def trigger_run(
        self, job_key: str, parameters: Mapping[str, str] | None = None
    ) -> Run | None:
        """Start a build and wait for it to leave the queue."""
        info = await self.get_job_info(job_key)
        previous = info.last_build.number if info.last_build else 0

        endpoint = "buildWithParameters" if parameters else "build"
        async with self.session.post(
            f"{self.job_path(job_key)}{endpoint}",
            params=dict(parameters or {}),
            allow_redirects=False,
        ) as response:
            await raise_for_status(response, f"trigger {job_key}", POST_ACCEPTED)
        log.info("Triggered job %s (last build #%s)", job_key, previous)

        async def step() -> RetryDecision[Build]:
            current = await self.get_job_info(job_key)
            if current.last_build is None or current.last_build.number <= previous:
                return KeepWaiting(reason="new build not started yet")
            return Done(await self.get_build(job_key, current.last_build.number))

        try:
            build = await run_until(
                step, self.config.trigger_policy, context=f"start build of {job_key}"
            )
        except ExhaustedError as exc:
            log.warning("Build of %s did not start: %s", job_key, exc)
            return None
        return build.to_run(job_key)

    async def job_activity(self) -> list[JobActivity]:
        """Report running builds and queue state of the component jobs."""

        async def activity(job_name: str) -> list[JobActivity]:
            info = await self.get_job_info(job_name)
            job = await self.get_job(job_name)
            return [
                JobActivity(
                    job_name=job_name,
                    running_builds=sum(1 for build in job.builds if build.building),
                    in_queue=info.in_queue,
                    last_build=info.last_build.number if info.last_build else None,
                )
            ]

        source, gitops = self.config.job_names
        activities = await activity(source)
        try:
            activities += await activity(gitops)
        except NotFoundError:
            log.info("Gitops job %s not found, skipping", gitops)
        return activities

    def credentials_path(self, folder: str) -> str:
        return f"job/{quote(folder, safe='')}/credentials/store/folder/domain/_/"

    async def credential_exists(self, folder: str, credential_id: str) -> bool:
        path = (
            f"{self.credentials_path(folder)}credential/"
            f"{quote(credential_id, safe='')}/api/json"
        )
        async with self.session.get(path) as response:
            if response.status == 404:
                return False
            await raise_for_status(response, f"get credential {credential_id}")
            return True

    async def add_credential(
        self,
        folder: str,
        credential_id: str,
        secret: str,
        kind: CredentialKind = "secret_text",
    ) -> None:
        """Create or update a folder credential.

        The credential is looked up first and updated in place when it exists;
        a write conflict (409) is retried. The write is verified by reading the
        credential back.

        Raises:
            ExhaustedError: If the credential could not be written and verified

        """
        document = credential_xml(credential_id, secret, kind)
        base = self.credentials_path(folder)

        async def write() -> None:
            if await self.credential_exists(folder, credential_id):
                path = f"{base}credential/{quote(credential_id, safe='')}/config.xml"
                action = f"update credential {credential_id}"
            else:
                path = f"{base}createCredentials"
                action = f"create credential {credential_id}"
            async with self.session.post(
                path, data=document, headers=XML_HEADERS, allow_redirects=False
            ) as response:
                await raise_for_status(response, action, POST_ACCEPTED)

        async def step() -> RetryDecision[None]:
            try:
                await write()
            except InvalidRequestError as exc:
                if exc.status != 409:
                    raise
                return KeepWaiting(reason="conflict", error=exc)
            if not await self.credential_exists(folder, credential_id):
                return KeepWaiting(reason="credential not visible yet")
            return Done(None)

        await run_until(
            step,
            self.config.credential_policy,
            context=f"add credential {credential_id} to {folder}",
        )
        log.info("Credential %s stored in folder %s", credential_id, folder)
