"""
Process admission gate.

Externally produced process maps (LLM output, imports) are decoded into
ProcessData and must pass the quality validator without a single failed
error-level check before anything downstream may store them.
"""

from typing import Any, Mapping, Optional, Tuple, Union
import logging

from schemas.process_data import ProcessData, parse_process_data
from schemas.quality import QualityCheckResult
from services.quality_validator import QualityThresholds, validate_process

logger = logging.getLogger(__name__)


class ProcessRejectedError(Exception):
    """Raised when a decoded process map fails error-level quality checks"""

    def __init__(self, report: QualityCheckResult):
        self.report = report
        failed = ", ".join(item.rule for item in report.failed_errors)
        super().__init__(f"Process rejected: {failed}")


def admit_process(
    payload: Union[ProcessData, Mapping[str, Any], str],
    thresholds: Optional[QualityThresholds] = None,
) -> Tuple[ProcessData, QualityCheckResult]:
    """
    Decode and validate an external process map.

    Raises ProcessDataError when the payload does not match the schema and
    ProcessRejectedError when it does but fails an error-level check.
    """
    data = parse_process_data(payload)
    report = validate_process(data, thresholds)
    if report.failed_errors:
        logger.warning(
            "Rejected process '%s': %d failed error checks", data.name, len(report.failed_errors)
        )
        raise ProcessRejectedError(report)
    return data, report
