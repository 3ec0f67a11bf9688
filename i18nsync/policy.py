"""Error collection policy for a single run."""

from __future__ import annotations

import logging
import threading
from typing import List, Optional

from .errors import ErrorCategory, ErrorRecord

logger = logging.getLogger(__name__)


class ErrorPolicy:
    """Collects per-file and per-language errors so the run can continue.

    Errors are reported together at the end of the run. Fatal conditions
    (a duplicate key conflict) are raised by the components themselves and
    never pass through the policy.
    """

    def __init__(self, *, verbose: bool = False) -> None:
        self.verbose = verbose
        self.records: List[ErrorRecord] = []
        self._lock = threading.Lock()

    def handle_error(
        self,
        category: ErrorCategory,
        message: str,
        *,
        subject: Optional[str] = None,
        details: Optional[str] = None,
    ) -> None:
        """Record a non-fatal error and keep going."""

        record = ErrorRecord(
            category=category,
            message=message,
            subject=subject,
            details=details,
        )
        with self._lock:
            self.records.append(record)
        logger.debug("recorded %s error for %s: %s", category.name, subject, message)

        if self.verbose:
            print(message)

    def failed_subjects(self, category: ErrorCategory) -> List[str]:
        """Return the subjects (file paths or languages) that failed."""

        return [
            record.subject
            for record in self.records
            if record.category == category and record.subject is not None
        ]

    @property
    def messages(self) -> List[str]:
        return [record.message for record in self.records]
