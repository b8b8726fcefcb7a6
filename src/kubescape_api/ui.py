"""UI capability contract consumed by the installer and the facade.

The host (an editor extension, a CLI) implements ``KubescapeUi``. The
library never stores a UI instance; one is passed into every call.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable, Optional, TypeVar

from kubescape_api.core.cancellation import CancellationToken
from kubescape_api.core.logging import get_logger

T = TypeVar("T")

ProgressCallback = Callable[[float], None]


class KubescapeUi(ABC):
    """Notifications and long-running-operation presentation."""

    @abstractmethod
    def info(self, msg: str) -> None:
        """Show an informational message."""

    @abstractmethod
    def error(self, msg: str) -> None:
        """Show an error message."""

    @abstractmethod
    def debug(self, msg: str) -> None:
        """Record a diagnostic message."""

    @abstractmethod
    def show_help(self, message: str, url: str) -> None:
        """Point the user at documentation."""

    @abstractmethod
    def slow(self, title: str, work: Callable[[], T]) -> T:
        """Run ``work`` behind an indeterminate busy indicator.

        Must return the result of ``work`` or let its exception propagate
        unchanged.
        """

    @abstractmethod
    def progress(
        self,
        title: str,
        cancel: Optional[CancellationToken],
        work: Callable[[ProgressCallback], T],
    ) -> T:
        """Run ``work``, handing it a callback accepting fractions in [0, 1]."""


class LoggingUi(KubescapeUi):
    """UI that writes everything to the logging system.

    Progress updates are only logged on a jump of at least ``step`` percent
    or on completion.
    """

    def __init__(self, logger_name: str = "kubescape_api.ui", step: int = 30) -> None:
        self._logger = get_logger(logger_name)
        self._step = step

    def info(self, msg: str) -> None:
        self._logger.info(msg)

    def error(self, msg: str) -> None:
        self._logger.error(msg)

    def debug(self, msg: str) -> None:
        self._logger.debug(msg)

    def show_help(self, message: str, url: str) -> None:
        self._logger.info(f"{message} (see {url})")

    def slow(self, title: str, work: Callable[[], T]) -> T:
        self._logger.info(title)
        return work()

    def progress(
        self,
        title: str,
        cancel: Optional[CancellationToken],
        work: Callable[[ProgressCallback], T],
    ) -> T:
        last = 0

        def report(fraction: float) -> None:
            nonlocal last
            percent = int(max(0.0, min(1.0, fraction)) * 100)
            if percent == 100 or percent - last >= self._step:
                last = percent
                self._logger.info(f"{title}: {percent}%")

        return work(report)
