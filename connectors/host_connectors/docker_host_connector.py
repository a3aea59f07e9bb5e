# connectors/host_connectors/docker_host_connector.py
"""
DockerHostConnector - the docker SDK side of ngxdash.

 - exec_in_container runs with tty=False / stdin=False so commands that touch
   /dev/stdout inside the nginx image cannot block
 - get_container_logs reads the captured stdout/stderr streams (`docker logs`)
 - copy_into_container ships a one-file tar archive (`docker cp`)
 - no call raises; failures come back as {"ok": False, ...}
"""

from __future__ import annotations

import io
import logging
import posixpath
import tarfile
import time

import docker
import requests
from docker.errors import DockerException

from connectors.host_connectors.base_host_connector import BaseHostConnector

logger = logging.getLogger("ngxdash.host.docker")


class DockerHostConnector(BaseHostConnector):
    def __init__(self, host_info=None, client=None):
        super().__init__(host_info=host_info or {})

        cfg = self.host.get("docker", {}) or {}
        base_url = cfg.get("base_url")

        if client is not None:
            self.client = client
            self._last_err = None
        else:
            # Try initialize docker client
            try:
                if base_url:
                    self.client = docker.DockerClient(base_url=base_url)
                else:
                    self.client = docker.from_env()
                self._last_err = None
            except DockerException as e:
                self.client = None
                self._last_err = str(e)

        logger.debug(
            "DockerHostConnector: host=%s client_present=%s last_err=%s",
            self.host_name, bool(self.client), self._last_err,
        )

    @property
    def available(self) -> bool:
        return self.client is not None

    # -------------------------------------------------
    #                SAFE DOCKER CALL
    # -------------------------------------------------
    def _safe(self, fn):
        if not self.client:
            raise RuntimeError(f"docker not available: {self._last_err or 'no client'}")
        try:
            return fn()
        except (DockerException, requests.exceptions.RequestException) as e:
            raise RuntimeError(f"docker error: {e}")

    @staticmethod
    def _decode(out) -> str:
        if isinstance(out, bytes):
            return out.decode("utf-8", errors="ignore")
        return str(out or "")

    # -------------------------------------------------
    #                     LOGS
    # -------------------------------------------------
    def get_container_logs(self, container_id, tail=100, stdout=True, stderr=False):
        """
        Captured log stream of the container, tail-limited.

        The official nginx image links access.log -> /dev/stdout and
        error.log -> /dev/stderr, so the two streams are read separately.
        """
        def fn():
            c = self.client.containers.get(container_id)
            return self._decode(c.logs(tail=tail, stdout=stdout, stderr=stderr))

        try:
            return {"ok": True, "stdout": self._safe(fn), "stderr": ""}
        except RuntimeError as e:
            logger.debug("logs failed for %s: %s", container_id, e)
            return {"ok": False, "stdout": "", "stderr": str(e)}

    # -------------------------------------------------
    #                EXEC IN CONTAINER
    # -------------------------------------------------
    def exec_in_container(self, container_id, cmd):
        """
        Run `cmd` (argv list, or a string handed to `sh -c`) in the container.
        stdout and stderr are combined, exit code decides "ok".
        """
        argv = cmd if isinstance(cmd, (list, tuple)) else ["sh", "-c", cmd]
        logger.debug("exec_in_container id=%s cmd=%s", container_id, argv)

        def fn():
            c = self.client.containers.get(container_id)
            res = c.exec_run(
                list(argv),
                stdout=True,
                stderr=True,
                tty=False,
                stdin=False
            )
            return res.exit_code, self._decode(res.output)

        try:
            exit_code, output = self._safe(fn)
        except RuntimeError as e:
            return {"ok": False, "stdout": "", "stderr": str(e)}
        return {
            "ok": exit_code == 0,
            "stdout": output,
            "stderr": "" if exit_code == 0 else f"exit status {exit_code}",
        }

    # -------------------------------------------------
    #                   INSPECT
    # -------------------------------------------------
    def inspect(self, container_id):
        """`docker inspect` equivalent: {"ok", "attrs", "stderr"}."""
        def fn():
            return self.client.containers.get(container_id).attrs or {}

        try:
            return {"ok": True, "attrs": self._safe(fn), "stderr": ""}
        except RuntimeError as e:
            return {"ok": False, "attrs": {}, "stderr": str(e)}

    # -------------------------------------------------
    #                 COPY (docker cp)
    # -------------------------------------------------
    def copy_into_container(self, container_id, path: str, content: str, mode: int = 0o644):
        directory, name = posixpath.split(path)
        data = content.encode("utf-8")

        buf = io.BytesIO()
        with tarfile.open(fileobj=buf, mode="w") as tar:
            info = tarfile.TarInfo(name=name)
            info.size = len(data)
            info.mode = mode
            info.mtime = int(time.time())
            tar.addfile(info, io.BytesIO(data))

        def fn():
            c = self.client.containers.get(container_id)
            return c.put_archive(directory or "/", buf.getvalue())

        try:
            ok = bool(self._safe(fn))
        except RuntimeError as e:
            return {"ok": False, "stdout": "", "stderr": str(e)}
        return {"ok": ok, "stdout": "", "stderr": "" if ok else f"put_archive refused {path}"}

    # -------------------------------------------------
    #                  CLOSE CLIENT
    # -------------------------------------------------
    def close(self):
        if self.client:
            try:
                self.client.close()
            except DockerException as e:
                logger.debug("close failed: %s", e)
