# connectors/errors.py
"""
Error taxonomy.

  SourceUnavailable  - a sites directory or log file cannot be opened at all;
                       the listing / log call fails for this refresh only.
  ConfigParseError   - one site file could not be understood; callers turn it
                       into a placeholder entry and keep going.
  ActionError        - enable/disable/test/reload/create failed; the message
                       is meant for the operator.

Metric probes never raise: an unavailable subsystem reads as zero.
"""


class NginxError(Exception):
    """Base class for everything ngxdash raises on purpose."""


class SourceUnavailable(NginxError):
    pass


class ConfigParseError(NginxError):
    pass


class ActionError(NginxError):
    pass


class SiteNotFound(ActionError):
    pass


class ConfigTestError(ActionError):
    def __init__(self, message, output=""):
        super().__init__(message)
        self.output = output


class ReloadError(ActionError):
    pass


class UnsupportedAction(ActionError):
    pass
