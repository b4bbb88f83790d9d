# /*
# Copyright 2026 The Reclaim E2E Authors.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# */

"""kubectl client with error classification, plus command checks."""

from __future__ import annotations

import json
import subprocess

import sh
import yaml
from tenacity import retry, retry_if_exception_type, retry_if_not_exception_type, stop_after_attempt, wait_fixed

from reclaim_e2e import logger
from reclaim_e2e.config import HarnessSettings
from reclaim_e2e.constants import (
    KUBECTL_CREATE_MAX_RETRIES,
    KUBECTL_CREATE_RETRY_WAIT_SECONDS,
    RESOURCE_FOR_KIND,
)
from reclaim_e2e.errors import (
    AdmissionDeniedError,
    AlreadyExistsError,
    ClusterError,
    ForbiddenError,
    InvalidRequestError,
    NotFoundError,
    classify_kubectl_error,
)


def require_command(cmd: str) -> None:
    """Check if a command exists on the system PATH.

    Args:
        cmd: Name of the CLI command to check.

    Raises:
        RuntimeError: If the command is not found.
    """
    try:
        sh.which(cmd)
    except sh.ErrorReturnCode as err:
        raise RuntimeError(f"Required command '{cmd}' not found. Please install it first.") from err


def run_kubectl(
    binary: str,
    args: list[str],
    stdin: str | None = None,
    timeout: int = 30,
) -> tuple[bool, str, str]:
    """Run a kubectl command via subprocess and return (success, stdout, stderr).

    Uses subprocess instead of sh because error classification needs stderr
    on its own, separate from the JSON written to stdout.

    Args:
        binary: kubectl executable.
        args: kubectl arguments (e.g. ``["get", "pods", "-n", "default"]``).
        stdin: Text fed to kubectl's stdin, or None.
        timeout: Maximum seconds to wait for the command to complete.

    Returns:
        Tuple of (success, stdout, stderr).
    """
    try:
        result = subprocess.run(
            [binary, *args],
            input=stdin,
            capture_output=True,
            text=True,
            timeout=timeout,
        )
        return result.returncode == 0, result.stdout, result.stderr
    except (subprocess.SubprocessError, OSError) as exc:
        return False, "", str(exc)


def resource_for(manifest: dict) -> str:
    """Return the kubectl resource name for a manifest's ``kind``."""
    kind = manifest.get("kind", "")
    try:
        return RESOURCE_FOR_KIND[kind]
    except KeyError:
        raise ValueError(f"Unsupported manifest kind: {kind!r}") from None


class Kubectl:
    """Thin JSON-speaking wrapper over the kubectl CLI.

    Every failed call raises the ClusterError subclass matching kubectl's
    stderr, so callers can tell a missing object from a denied request.
    """

    def __init__(
        self,
        binary: str = "kubectl",
        *,
        context: str | None = None,
        kubeconfig: str | None = None,
        timeout: int = 30,
    ) -> None:
        self.binary = binary
        self.context = context
        self.kubeconfig = kubeconfig
        self.timeout = timeout

    @classmethod
    def from_settings(cls, settings: HarnessSettings) -> Kubectl:
        return cls(
            settings.kubectl,
            context=settings.kube_context,
            kubeconfig=settings.kubeconfig,
            timeout=settings.kubectl_timeout,
        )

    def _global_args(self) -> list[str]:
        args: list[str] = []
        if self.kubeconfig:
            args += ["--kubeconfig", self.kubeconfig]
        if self.context:
            args += ["--context", self.context]
        return args

    def run(self, args: list[str], stdin: str | None = None) -> str:
        """Run kubectl and return stdout.

        Raises:
            ClusterError: Classified from stderr when the call fails.
        """
        full_args = self._global_args() + args
        logger.debug("kubectl %s", " ".join(full_args))
        ok, stdout, stderr = run_kubectl(self.binary, full_args, stdin=stdin, timeout=self.timeout)
        if not ok:
            raise classify_kubectl_error(full_args, stderr)
        return stdout

    def _run_json(self, args: list[str], stdin: str | None = None) -> dict:
        stdout = self.run(args + ["-o", "json"], stdin=stdin)
        try:
            return json.loads(stdout) if stdout.strip() else {}
        except json.JSONDecodeError as err:
            raise ClusterError(f"kubectl returned invalid JSON: {err}", args_used=args) from err

    @staticmethod
    def _scope(namespace: str | None) -> list[str]:
        return ["-n", namespace] if namespace else []

    def get(self, kind: str, name: str, namespace: str | None = None) -> dict:
        """Get a single object as a dict."""
        return self._run_json(["get", kind, name, *self._scope(namespace)])

    def list(
        self,
        kind: str,
        namespace: str | None = None,
        selector: str | None = None,
        all_namespaces: bool = False,
    ) -> list[dict]:
        """List objects, optionally filtered by label selector."""
        args = ["get", kind]
        args += ["--all-namespaces"] if all_namespaces else self._scope(namespace)
        if selector:
            args += ["-l", selector]
        return self._run_json(args).get("items", [])

    @retry(
        stop=stop_after_attempt(KUBECTL_CREATE_MAX_RETRIES),
        wait=wait_fixed(KUBECTL_CREATE_RETRY_WAIT_SECONDS),
        retry=retry_if_exception_type(ClusterError) & retry_if_not_exception_type(
            (AlreadyExistsError, AdmissionDeniedError, InvalidRequestError, ForbiddenError, NotFoundError)
        ),
        reraise=True,
    )
    def create(self, manifest: dict) -> dict:
        """Create an object from a manifest and return the stored object.

        Only unclassified failures (connection resets, timeouts) are retried;
        a classified rejection is an answer and propagates at once.

        Raises:
            ValueError: If the manifest's kind is not one the harness manages.
        """
        resource = resource_for(manifest)
        namespace = manifest.get("metadata", {}).get("namespace")
        logger.debug("Creating %s %s", resource, manifest.get("metadata", {}).get("name"))
        return self._run_json(["create", "-f", "-", *self._scope(namespace)], stdin=yaml.safe_dump(manifest))

    def patch(
        self,
        kind: str,
        name: str,
        patch: dict,
        namespace: str | None = None,
        subresource: str | None = None,
    ) -> dict:
        """Apply a JSON merge patch."""
        args = ["patch", kind, name, *self._scope(namespace), "--type=merge", "-p", json.dumps(patch)]
        if subresource:
            args.append(f"--subresource={subresource}")
        return self._run_json(args)

    def delete(
        self,
        kind: str,
        name: str,
        namespace: str | None = None,
        ignore_not_found: bool = False,
        wait: bool = False,
    ) -> None:
        """Delete an object by name."""
        args = ["delete", kind, name, *self._scope(namespace), f"--wait={str(wait).lower()}"]
        if ignore_not_found:
            args.append("--ignore-not-found")
        self.run(args)

    def delete_all(self, kind: str, namespace: str, selector: str | None = None) -> None:
        """Delete every object of *kind* in a namespace."""
        args = ["delete", kind, "-n", namespace, "--wait=false", "--ignore-not-found"]
        args += ["-l", selector] if selector else ["--all"]
        self.run(args)
