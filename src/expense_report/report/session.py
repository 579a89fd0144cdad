import asyncio
import logging
from datetime import date
from typing import Optional

from expense_report.core.errors import GenerationInProgressError
from expense_report.core.schema import ReportRequest
from expense_report.report import composer
from expense_report.report.composer import ReportArtifact

logger = logging.getLogger(__name__)


class ReportSession:
    """Serializes report generation for one user session: one composition at a time."""

    def __init__(self):
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def generate(self, request: ReportRequest, wait: bool = True,
                       generated_on: Optional[date] = None) -> ReportArtifact:
        if self.busy:
            if not wait:
                raise GenerationInProgressError("A report is already being generated.")
            logger.info("Generation already running, queuing the new request")

        async with self._lock:
            return await composer.compose(request, generated_on=generated_on)
