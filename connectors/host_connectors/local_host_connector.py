# connectors/host_connectors/local_host_connector.py

import logging
import subprocess

from connectors.host_connectors.base_host_connector import BaseHostConnector

logger = logging.getLogger("ngxdash.host.local")


class LocalHostConnector(BaseHostConnector):
    """
    Runs commands and reads files on the machine ngxdash itself runs on.

    Calls are blocking and carry no timeout; the caller decides where they run.
    """

    # ------------------------------------------------------------
    # OS COMMANDS
    # ------------------------------------------------------------
    def exec_cmd(self, cmd: str):
        """
        Return format:
        {
            "stdout": "...",
            "stderr": "",
            "ok": True
        }
        stderr is folded into stdout, so `nginx -t` diagnostics survive a
        failing exit code.
        """
        logger.debug("exec cmd=%s", cmd)
        try:
            out = subprocess.check_output(
                cmd,
                shell=True,
                stderr=subprocess.STDOUT
            )
            return {
                "stdout": out.decode("utf-8", errors="ignore"),
                "stderr": "",
                "ok": True
            }
        except subprocess.CalledProcessError as e:
            return {
                "stdout": (e.output or b"").decode("utf-8", errors="ignore"),
                "stderr": f"exit status {e.returncode}",
                "ok": False
            }
        except OSError as e:
            return {
                "stdout": "",
                "stderr": str(e),
                "ok": False
            }

    def read_file(self, path: str):
        try:
            with open(path, "r", errors="ignore") as f:
                return {"ok": True, "stdout": f.read(), "stderr": ""}
        except OSError as e:
            return {"ok": False, "stdout": "", "stderr": str(e)}
