"""Vercel deployment backend over the REST API."""

from __future__ import annotations

import json
import logging as py_logging
from collections.abc import Callable, Mapping
from typing import Protocol
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlparse
from urllib.request import Request, urlopen

from fullcontrol.collaborators import DeployOutcome, ProgressCallback
from fullcontrol.constants import DEPLOY_HTTP_TIMEOUT_SECONDS
from fullcontrol.errors import ExitCode, FullControlError
from fullcontrol.polling import PollFailed, PollPolicy, StillPending, poll_until_settled

logger = py_logging.getLogger(__name__)

VERCEL_API = "https://api.vercel.com"
READY_STATE = "READY"
FAILED_STATES = frozenset({"ERROR", "CANCELED"})
DEFAULT_READY_POLICY = PollPolicy(max_polls=90, interval_seconds=2.0)

HttpResponse = tuple[int, str, dict[str, str]]


class HttpRequester(Protocol):
    def __call__(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None = None,
    ) -> HttpResponse: ...


def _validate_api_url(url: str) -> None:
    parsed = urlparse(url)
    if parsed.scheme != "https" or parsed.netloc != "api.vercel.com":
        raise FullControlError(
            "Invalid deployment API address.",
            code=ExitCode.VALIDATION_ERROR,
            hint="Only https://api.vercel.com is supported.",
        )


def _default_requester(
    method: str,
    url: str,
    headers: dict[str, str],
    body: bytes | None = None,
) -> HttpResponse:
    _validate_api_url(url)
    request = Request(url, data=body, headers=headers, method=method)
    try:
        with urlopen(request, timeout=DEPLOY_HTTP_TIMEOUT_SECONDS) as response:  # nosec B310
            status = int(getattr(response, "status", response.getcode()))
            payload = response.read().decode("utf-8")
            response_headers = {key.lower(): value for key, value in response.headers.items()}
            return status, payload, response_headers
    except HTTPError as exc:
        payload = ""
        if exc.fp is not None:
            payload = exc.read().decode("utf-8", errors="replace")
        response_headers = {key.lower(): value for key, value in (exc.headers.items() if exc.headers else [])}
        return exc.code, payload, response_headers
    except URLError as exc:
        raise FullControlError(
            "Could not reach the deployment API.",
            code=ExitCode.DEPLOY_ERROR,
            hint=str(exc.reason) or "Check your network connection.",
        ) from exc


def _parse_json(payload: str) -> dict[str, object]:
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError as exc:
        raise FullControlError(
            "Deployment API returned invalid JSON.",
            code=ExitCode.DEPLOY_ERROR,
            hint="Try again later.",
        ) from exc
    if not isinstance(parsed, dict):
        raise FullControlError(
            "Deployment API returned an unexpected payload.",
            code=ExitCode.DEPLOY_ERROR,
            hint="Try again later.",
        )
    return parsed


def _api_error_message(status: int, payload: str) -> str:
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError:
        parsed = None
    if isinstance(parsed, dict):
        error = parsed.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return str(error["message"])
    return f"HTTP {status}"


def _ready_url(payload: Mapping[str, object]) -> str:
    url = str(payload.get("url") or "")
    if not url:
        return ""
    return url if url.startswith("https://") else f"https://{url}"


def _state_of(payload: Mapping[str, object]) -> str:
    return str(payload.get("readyState") or payload.get("status") or "").upper()


class VercelDeployBackend:
    def __init__(
        self,
        *,
        requester: HttpRequester | None = None,
        wait_for_ready: bool = True,
        ready_policy: PollPolicy = DEFAULT_READY_POLICY,
        sleep: Callable[[float], None] | None = None,
        team_id: str = "",
    ) -> None:
        self._request = requester or _default_requester
        self.wait_for_ready = wait_for_ready
        self._ready_policy = ready_policy
        self._sleep = sleep
        self.team_id = team_id.strip()

    def _url(self, path: str) -> str:
        url = f"{VERCEL_API}{path}"
        if self.team_id:
            url += f"?teamId={quote(self.team_id)}"
        return url

    def deploy(
        self,
        files: Mapping[str, str],
        project_name: str,
        token: str,
        *,
        env: Mapping[str, str] | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> DeployOutcome:
        token_value = token.strip()
        if not token_value:
            raise FullControlError(
                "Vercel token not configured",
                code=ExitCode.CONFIG_ERROR,
                hint="Set FULLCONTROL_DEPLOY_TOKEN or deploy_token in the config file.",
            )
        if not files:
            raise FullControlError(
                "No files to deploy.",
                code=ExitCode.DEPLOY_ERROR,
                hint="Create project files before deploying.",
            )

        headers = {
            "Authorization": f"Bearer {token_value}",
            "Content-Type": "application/json",
            "User-Agent": "fullcontrol",
        }
        document: dict[str, object] = {
            "name": project_name,
            "files": [{"file": path, "data": content} for path, content in sorted(files.items())],
            "projectSettings": {"framework": None},
        }
        if env:
            document["env"] = dict(env)
            document["build"] = {"env": dict(env)}

        _notify(on_progress, f"Uploading {len(files)} files...")
        logger.info("deploy-create project=%s files=%s", project_name, len(files))
        status, payload, _ = self._request(
            "POST",
            self._url("/v13/deployments"),
            headers,
            json.dumps(document).encode("utf-8"),
        )
        if status not in (200, 201):
            message = _api_error_message(status, payload)
            logger.error("deploy-create-failed project=%s status=%s message=%s", project_name, status, message)
            raise FullControlError(
                f"Deployment request failed: {message}",
                code=ExitCode.DEPLOY_ERROR,
                hint="Check the token permissions and project name.",
            )

        created = _parse_json(payload)
        deployment_id = str(created.get("id") or "")
        state = _state_of(created) or "QUEUED"
        _notify(on_progress, f"Deployment created: {state}")

        if self.wait_for_ready and deployment_id and state != READY_STATE:
            created = self._wait_until_ready(deployment_id, headers, on_progress)
            state = _state_of(created)

        outcome = DeployOutcome(url=_ready_url(created), deployment_id=deployment_id, state=state)
        logger.info("deploy-finished id=%s state=%s url=%s", outcome.deployment_id, outcome.state, outcome.url)
        return outcome

    def _wait_until_ready(
        self,
        deployment_id: str,
        headers: dict[str, str],
        on_progress: ProgressCallback | None,
    ) -> dict[str, object]:
        url = self._url(f"/v13/deployments/{quote(deployment_id)}")
        seen: list[str] = []

        def _check() -> dict[str, object]:
            status, payload, _ = self._request("GET", url, headers, None)
            if status != 200:
                raise PollFailed(_api_error_message(status, payload))
            current = _parse_json(payload)
            state = _state_of(current)
            if not seen or seen[-1] != state:
                seen.append(state)
                _notify(on_progress, f"Deployment state: {state or 'UNKNOWN'}")
            if state == READY_STATE:
                return current
            if state in FAILED_STATES:
                raise PollFailed(f"Deployment ended in state {state}")
            raise StillPending(state or "UNKNOWN")

        kwargs = {"sleep": self._sleep} if self._sleep is not None else {}
        try:
            return poll_until_settled(_check, policy=self._ready_policy, **kwargs)
        except PollFailed as exc:
            raise FullControlError(
                str(exc),
                code=ExitCode.DEPLOY_ERROR,
                hint="Inspect the deployment logs on the platform dashboard.",
            ) from exc
        except StillPending as exc:
            raise FullControlError(
                "Deployment did not become ready in time.",
                code=ExitCode.TIMEOUT_ERROR,
                hint=f"Last state: {exc.state}",
            ) from exc


def _notify(callback: ProgressCallback | None, message: str) -> None:
    if callback is not None:
        callback(message)
