# connectors/host_connectors/base_host_connector.py

class BaseHostConnector:
    """
    Base class for host connectors.

    A HostConnector is the only thing in ngxdash that touches the OS or the
    Docker daemon. Everything above it works on the result dicts:

        {"ok": bool, "stdout": str, "stderr": str}

    LocalHostConnector runs shell commands and reads files on this machine.
    DockerHostConnector talks to the daemon through the docker SDK.
    """

    def __init__(self, host_info: dict = None):
        """
        host_info = {
            "name": "localhost",
            "docker": {"base_url": ""}
        }
        """
        self.host = host_info or {}
        self.host_name = self.host.get("name") or "localhost"

    # ------------------------------------------------------------
    # OS commands (to be overridden)
    # ------------------------------------------------------------
    def exec_cmd(self, cmd: str):
        """Execute a shell command on this host."""
        raise NotImplementedError()

    def read_file(self, path: str):
        raise NotImplementedError()

    # ------------------------------------------------------------
    # Docker capabilities (to be overridden)
    # ------------------------------------------------------------
    def get_container_logs(self, container_id, tail=100, stdout=True, stderr=False):
        raise NotImplementedError()

    def exec_in_container(self, container_id, cmd):
        raise NotImplementedError()

    def inspect(self, container_id):
        raise NotImplementedError()

    def copy_into_container(self, container_id, path: str, content: str, mode: int = 0o644):
        raise NotImplementedError()
