import logging
import sys

from .config import LOG_LEVEL


class NamespaceFilter(logging.Filter):
    """Passes records whose logger name starts with one of the allowed prefixes.

    An empty prefix list passes everything.
    """

    def __init__(self, allowed_namespaces=None):
        super().__init__()
        self.allowed_namespaces = tuple(allowed_namespaces or ())

    def filter(self, record):
        return not self.allowed_namespaces or record.name.startswith(self.allowed_namespaces)


log_formatter = logging.Formatter(
    fmt="%(asctime)s - %(name)s:%(lineno)d - %(levelname)s - %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)

app_logger = logging.getLogger("statreports")
app_logger.setLevel(getattr(logging, LOG_LEVEL, logging.INFO))

console_handler = logging.StreamHandler(sys.stdout)
console_handler.setFormatter(log_formatter)

# To only see the report engine and the app entrypoint:
#
# namespace_filter = NamespaceFilter(["statreports.features.reports", "statreports.main"])
# console_handler.addFilter(namespace_filter)
if not app_logger.handlers:
    app_logger.addHandler(console_handler)
