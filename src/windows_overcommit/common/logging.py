"""Structured logging for the overcommit webhook.

Console output goes through rich with markup enabled, so any text that is
not meant as markup (messages, object names, uids) must be escaped before
it reaches the handler. ``OperationLogger`` does that for everything logged
on behalf of one admission request.
"""

import logging
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape


_initialized = False
_console = Console(stderr=True)


def build_handler(
    level: int = logging.INFO,
    component: Optional[str] = None,
    console: Optional[Console] = None,
) -> RichHandler:
    """Create the rich console handler used by the webhook.

    Args:
        level: Minimum level the handler emits.
        component: Optional component name shown in front of every record.
        console: Target console, stderr by default.
    """
    handler = RichHandler(
        console=console or _console,
        show_time=True,
        show_path=False,
        markup=True,
        rich_tracebacks=True,
        tracebacks_show_locals=False,
    )
    handler.setLevel(level)

    fmt = "%(message)s"
    if component:
        fmt = f"[bold cyan]{escape(f'[{component}]')}[/] %(message)s"
    handler.setFormatter(logging.Formatter(fmt))
    return handler


def setup_logging(level: str = "INFO", component: Optional[str] = None) -> None:
    """Install the rich handler on the root logger. Only the first call counts."""
    global _initialized
    if _initialized:
        return
    _initialized = True

    log_level = getattr(logging, level.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(log_level)
    root.handlers.clear()
    root.addHandler(build_handler(log_level, component))


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


class OperationLogger(logging.LoggerAdapter):
    """Logger adapter tagging records with one admission operation.

    Records read ``[type=<kind>,object=<namespace>/<name>,uid=<uid>] <msg>``.
    Both the tag and the message are escaped for rich markup.
    """

    def __init__(
        self,
        logger: logging.Logger,
        kind: str,
        namespace: str,
        name: str,
        uid: str,
    ):
        super().__init__(
            logger,
            {"kind": kind, "namespace": namespace, "name": name, "uid": uid},
        )

    @property
    def context(self) -> str:
        extra = self.extra
        return (
            f"[type={extra['kind']},object={extra['namespace']}/{extra['name']},"
            f"uid={extra['uid']}]"
        )

    def process(self, msg, kwargs):
        return f"{escape(self.context)} {escape(str(msg))}", kwargs
