"""Minimal async Kubernetes REST client for secrets and Tekton resources."""

import base64
import logging
import ssl
from collections.abc import AsyncGenerator, Mapping, Sequence
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import aiohttp
from pydantic import BaseModel, SecretStr

from tssc_ci.errors import NotFoundError, raise_for_status

log = logging.getLogger(__name__)

SERVICE_ACCOUNT_DIR = Path("/var/run/secrets/kubernetes.io/serviceaccount")
IN_CLUSTER_API_SERVER = "https://kubernetes.default.svc"

TEKTON_API = "apis/tekton.dev/v1"
ROUTE_API = "apis/route.openshift.io/v1"
MERGE_PATCH = "application/merge-patch+json"


class KubeConfig(BaseModel):
    """Connection settings for the Kubernetes API server."""

    api_server: str
    token: SecretStr
    verify_ssl: bool = True
    ca_file: Path | None = None

    @classmethod
    def in_cluster(cls, directory: Path = SERVICE_ACCOUNT_DIR) -> "KubeConfig":
        """Build a config from the service account mounted into a pod."""
        ca_file = directory / "ca.crt"
        return cls(
            api_server=IN_CLUSTER_API_SERVER,
            token=SecretStr((directory / "token").read_text().strip()),
            ca_file=ca_file if ca_file.exists() else None,
        )


@dataclass(frozen=True, kw_only=True)
class KubeClient:
    """Reads cluster secrets and manages Tekton PipelineRuns.

    Only the handful of endpoints the CI adaptors need are wrapped; responses
    are returned as plain JSON mappings.
    """

    config: KubeConfig
    session: aiohttp.ClientSession = field(repr=False)

    @classmethod
    @asynccontextmanager
    async def from_config(
        cls, config: KubeConfig
    ) -> AsyncGenerator["KubeClient", None]:
        """Create client with managed session lifecycle."""
        headers = {
            "Authorization": f"Bearer {config.token.get_secret_value()}",
            "Accept": "application/json",
        }
        ssl_context: ssl.SSLContext | bool = config.verify_ssl
        if config.verify_ssl and config.ca_file is not None:
            ssl_context = ssl.create_default_context(cafile=str(config.ca_file))
        connector = aiohttp.TCPConnector(ssl=ssl_context)
        async with aiohttp.ClientSession(
            base_url=config.api_server.rstrip("/") + "/",
            headers=headers,
            connector=connector,
        ) as session:
            yield cls(config=config, session=session)

    async def get_json(
        self, path: str, action: str, params: Mapping[str, str] | None = None
    ) -> Any:
        async with self.session.get(path, params=params) as response:
            await raise_for_status(response, action)
            return await response.json()

    async def get_secret(self, name: str, namespace: str) -> dict[str, str]:
        """Read a Secret and return its base64-decoded data.

        Raises:
            NotFoundError: If the secret does not exist

        """
        data = await self.get_json(
            f"api/v1/namespaces/{namespace}/secrets/{name}",
            f"get secret {namespace}/{name}",
        )
        encoded: Mapping[str, str] = data.get("data") or {}
        return {
            key: base64.b64decode(value).decode("utf-8")
            for key, value in encoded.items()
        }

    async def list_pipeline_runs(
        self, namespace: str, label_selector: str
    ) -> Sequence[Mapping[str, Any]]:
        data = await self.get_json(
            f"{TEKTON_API}/namespaces/{namespace}/pipelineruns",
            f"list pipelineruns in {namespace}",
            params={"labelSelector": label_selector},
        )
        items: Sequence[Mapping[str, Any]] = data.get("items") or []
        return items

    async def get_pipeline_run(self, namespace: str, name: str) -> Mapping[str, Any]:
        data: Mapping[str, Any] = await self.get_json(
            f"{TEKTON_API}/namespaces/{namespace}/pipelineruns/{name}",
            f"get pipelinerun {name}",
        )
        return data

    async def patch_pipeline_run(
        self, namespace: str, name: str, patch: Mapping[str, Any]
    ) -> None:
        url = f"{TEKTON_API}/namespaces/{namespace}/pipelineruns/{name}"
        async with self.session.patch(
            url, json=patch, headers={"Content-Type": MERGE_PATCH}
        ) as response:
            await raise_for_status(response, f"patch pipelinerun {name}")

    async def get_task_run(self, namespace: str, name: str) -> Mapping[str, Any]:
        data: Mapping[str, Any] = await self.get_json(
            f"{TEKTON_API}/namespaces/{namespace}/taskruns/{name}",
            f"get taskrun {name}",
        )
        return data

    async def get_pod_logs(self, namespace: str, pod: str) -> str:
        """Return the logs of every container of a pod, init containers first."""
        spec = (
            await self.get_json(
                f"api/v1/namespaces/{namespace}/pods/{pod}", f"get pod {pod}"
            )
        ).get("spec") or {}
        containers = [
            container["name"]
            for container in [
                *(spec.get("initContainers") or []),
                *(spec.get("containers") or []),
            ]
        ]

        sections: list[str] = []
        for container in containers:
            async with self.session.get(
                f"api/v1/namespaces/{namespace}/pods/{pod}/log",
                params={"container": container},
            ) as response:
                if response.status != 200:
                    text = await response.text()
                    sections.append(
                        f"--- Container: {container} ---\n"
                        f"Error getting logs: {response.status} {text}\n"
                    )
                    continue
                text = await response.text()
            sections.append(
                f"--- Container: {container} ---\n{text or 'No logs available'}\n"
            )
        return "\n".join(sections)

    async def get_route_host(self, namespace: str, name: str) -> str:
        data = await self.get_json(
            f"{ROUTE_API}/namespaces/{namespace}/routes/{name}",
            f"get route {namespace}/{name}",
        )
        host = (data.get("spec") or {}).get("host")
        if not host:
            raise NotFoundError(f"Route {namespace}/{name} has no host")
        return str(host)
