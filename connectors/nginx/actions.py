# connectors/nginx/actions.py
"""
Site and service actions.

NativeActions works on the local filesystem plus `nginx -t` and
`systemctl reload nginx`; ContainerActions does the docker-exec equivalent.
Failures raise ActionError subclasses with a message for the operator.

create_site is the one operation with rollback: a file that fails the config
test is removed again, so it cannot break later reloads of other sites.
"""

import logging
import os
import posixpath
from typing import List

from connectors.errors import (
    ActionError,
    ConfigTestError,
    ReloadError,
    SiteNotFound,
    UnsupportedAction,
)
from connectors.schema import NginxPaths

logger = logging.getLogger("ngxdash.actions")

CONTAINER_SITES_AVAILABLE = "/etc/nginx/sites-available"
CONTAINER_SITES_ENABLED = "/etc/nginx/sites-enabled"
CONTAINER_CONF_D = "/etc/nginx/conf.d"


def config_error_lines(output: str) -> List[str]:
    """Lines of `nginx -t` output that mention an error or failure."""
    return [
        line.strip() for line in (output or "").splitlines()
        if "error" in line or "failed" in line
    ]


class SiteActions:
    """Capability shared by both modes."""

    def enable_site(self, name: str):
        raise NotImplementedError()

    def disable_site(self, name: str):
        raise NotImplementedError()

    def run_config_test(self):
        """Return (ok, combined output)."""
        raise NotImplementedError()

    def reload(self):
        raise NotImplementedError()

    def create_site(self, filename: str, content: str):
        raise NotImplementedError()

    def site_config_path(self) -> str:
        raise NotImplementedError()

    # ----------------------
    # Shared on top of run_config_test
    # ----------------------
    def test_config(self):
        ok, output = self.run_config_test()
        if not ok:
            raise ConfigTestError(f"config test failed: {output.strip()}", output=output)

    def config_errors(self) -> List[str]:
        ok, output = self.run_config_test()
        if ok:
            return []
        return config_error_lines(output) or [output.strip() or "configuration has errors"]


def _check_filename(filename: str):
    if not filename or filename in (".", "..") or "/" in filename:
        raise ActionError(f"invalid site file name: {filename!r}")


# ------------------------------------------------------------
# Native
# ------------------------------------------------------------
class NativeActions(SiteActions):

    def __init__(self, host, paths: NginxPaths = None):
        self.host = host
        self.paths = paths or NginxPaths()

    def enable_site(self, name: str):
        _check_filename(name)
        available = os.path.join(self.paths.sites_available, name)
        enabled = os.path.join(self.paths.sites_enabled, name)
        if not os.path.exists(available):
            raise SiteNotFound(f"site {name} does not exist")
        try:
            os.symlink(available, enabled)
        except FileExistsError:
            pass
        except OSError as e:
            raise ActionError(f"failed to enable site: {e}")
        logger.info("enabled site %s", name)

    def disable_site(self, name: str):
        _check_filename(name)
        try:
            os.remove(os.path.join(self.paths.sites_enabled, name))
        except FileNotFoundError:
            pass
        except OSError as e:
            raise ActionError(f"failed to disable site: {e}")
        logger.info("disabled site %s", name)

    def run_config_test(self):
        res = self.host.exec_cmd("nginx -t")
        return bool(res.get("ok")), res.get("stdout", "") or res.get("stderr", "")

    def reload(self):
        res = self.host.exec_cmd("systemctl reload nginx")
        if not res.get("ok"):
            raise ReloadError(f"failed to reload nginx: {(res.get('stdout') or res.get('stderr', '')).strip()}")
        logger.info("nginx reloaded")

    def uses_sites_layout(self) -> bool:
        return os.path.isdir(self.paths.sites_available)

    def site_config_path(self) -> str:
        return self.paths.sites_available if self.uses_sites_layout() else self.paths.conf_d

    def create_site(self, filename: str, content: str):
        """
        Write, link, test and reload a new site.

        An existing file of the same name is never overwritten, so a failed
        test can only ever remove what this call wrote.
        """
        _check_filename(filename)
        symlink_path = None
        if self.uses_sites_layout():
            config_path = os.path.join(self.paths.sites_available, filename)
            symlink_path = os.path.join(self.paths.sites_enabled, filename)
            dirs = (self.paths.sites_available, self.paths.sites_enabled)
        else:
            config_path = os.path.join(self.paths.conf_d, filename)
            dirs = (self.paths.conf_d,)

        try:
            for d in dirs:
                os.makedirs(d, exist_ok=True)
        except OSError as e:
            raise ActionError(f"failed to create config directory: {e}")

        try:
            with open(config_path, "x") as f:
                f.write(content)
        except FileExistsError:
            raise ActionError(f"site {filename} already exists at {config_path}")
        except OSError as e:
            raise ActionError(f"failed to write config file: {e}")

        created_link = False
        if symlink_path:
            try:
                os.symlink(config_path, symlink_path)
                created_link = True
            except FileExistsError:
                pass
            except OSError as e:
                self._remove(config_path)
                raise ActionError(f"failed to create symlink: {e}")

        try:
            self.test_config()
        except ConfigTestError:
            logger.warning("config test failed for new site %s, rolling back", filename)
            if created_link:
                self._remove(symlink_path)
            self._remove(config_path)
            raise

        # The file passed the test; a failed reload leaves it in place.
        self.reload()
        logger.info("created site %s at %s", filename, config_path)

    @staticmethod
    def _remove(path):
        try:
            os.remove(path)
        except OSError as e:
            logger.error("rollback could not remove %s: %s", path, e)


# ------------------------------------------------------------
# Container
# ------------------------------------------------------------
class ContainerActions(SiteActions):

    def __init__(self, docker, container_id: str):
        self.docker = docker
        self.container_id = container_id

    def _exec(self, argv):
        return self.docker.exec_in_container(self.container_id, argv)

    def enable_site(self, name: str):
        raise UnsupportedAction(
            "enable/disable not supported for Docker NGINX - edit config and restart container"
        )

    def disable_site(self, name: str):
        raise UnsupportedAction(
            "enable/disable not supported for Docker NGINX - edit config and restart container"
        )

    def run_config_test(self):
        res = self._exec(["nginx", "-t"])
        return bool(res.get("ok")), res.get("stdout", "") or res.get("stderr", "")

    def reload(self):
        res = self._exec(["nginx", "-s", "reload"])
        if not res.get("ok"):
            raise ReloadError(f"reload failed: {(res.get('stdout') or res.get('stderr', '')).strip()}")
        logger.info("nginx reloaded in container %s", self.container_id)

    def uses_sites_layout(self) -> bool:
        return bool(self._exec(["test", "-d", CONTAINER_SITES_ENABLED]).get("ok"))

    def site_config_path(self) -> str:
        return CONTAINER_SITES_AVAILABLE if self.uses_sites_layout() else CONTAINER_CONF_D

    def _exists(self, path: str) -> bool:
        # -L catches dangling links too
        return any(self._exec(["test", flag, path]).get("ok") for flag in ("-e", "-L"))

    def _rollback(self, *paths):
        res = self._exec(["rm", "-f"] + list(paths))
        if not res.get("ok"):
            logger.error("rollback in %s could not remove %s: %s",
                         self.container_id, " ".join(paths), res.get("stdout") or res.get("stderr"))

    def create_site(self, filename: str, content: str):
        """
        Copy, link, test and reload a new site inside the container.

        Refuses to replace an existing file or link. Any failure after the
        copy removes the copied file and the link this call made.
        """
        _check_filename(filename)
        sites_layout = self.uses_sites_layout()
        target = posixpath.join(
            CONTAINER_SITES_AVAILABLE if sites_layout else CONTAINER_CONF_D, filename
        )
        link = posixpath.join(CONTAINER_SITES_ENABLED, filename) if sites_layout else None

        for path in filter(None, (target, link)):
            if self._exists(path):
                raise ActionError(f"site {filename} already exists at {path}")

        res = self.docker.copy_into_container(self.container_id, target, content)
        if not res.get("ok"):
            raise ActionError(f"failed to copy config to container: {res.get('stderr')}")

        res = self._exec(["chmod", "644", target])
        if not res.get("ok"):
            self._rollback(target)
            raise ActionError(f"failed to set file permissions: {res.get('stdout') or res.get('stderr')}")

        if link:
            res = self._exec(["ln", "-s", target, link])
            if not res.get("ok"):
                self._rollback(target)
                raise ActionError(f"failed to create symlink: {res.get('stdout') or res.get('stderr')}")

        try:
            self.test_config()
        except ConfigTestError:
            logger.warning("config test failed for new site %s in %s, rolling back",
                           filename, self.container_id)
            self._rollback(*filter(None, (target, link)))
            raise

        self.reload()
        logger.info("created site %s at %s:%s", filename, self.container_id, target)
