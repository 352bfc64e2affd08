"""Estimate run logger.

Prints highly visible summaries of estimate runs so they stand out in the
functions emulator log stream, and mirrors each summary as a structlog event.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List

import structlog

logger = structlog.get_logger()

BANNER_WIDTH = 80
RUN_BANNER_CHAR = "█"
REPRICE_BANNER_CHAR = "─"
FAILURE_BANNER_CHAR = "!"


def _create_banner(char: str, text: str, width: int = BANNER_WIDTH) -> str:
    """Create a centered banner with given character."""
    text_with_spaces = f" {text} "
    padding = (width - len(text_with_spaces)) // 2
    return char * padding + text_with_spaces + char * (width - padding - len(text_with_spaces))


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


def log_estimate_start(project_id: str, scope_item_count: int, price_point: str, repricing: bool) -> None:
    """Log estimate generation start."""
    print("\n")
    print(RUN_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(RUN_BANNER_CHAR, "REPRICING ESTIMATE" if repricing else "GENERATING ESTIMATE"))
    print(RUN_BANNER_CHAR * BANNER_WIDTH)
    print(f"║ Project ID  : {project_id}")
    print(f"║ Timestamp   : {_timestamp()}")
    print(f"║ Scope Items : {scope_item_count}")
    print(f"║ Price Point : {price_point}")
    print(RUN_BANNER_CHAR * BANNER_WIDTH)

    logger.info(
        "estimate_start_logged",
        project_id=project_id,
        scope_items=scope_item_count,
        price_point=price_point,
        repricing=repricing,
    )


def log_signals_summary(project_id: str, assumptions: Dict[str, Any]) -> None:
    """Log which signal sources contributed."""
    evidence = assumptions.get("evidence", {})
    usage = assumptions.get("fallbackUsage", {})

    print(_create_banner(REPRICE_BANNER_CHAR, "SIGNALS"))
    print(f"║ Estimator Mode : {assumptions.get('estimatorMode')}")
    print(f"║ AI Lines       : {assumptions.get('aiLineCount', 0)}")
    print(f"║ Searches       : {evidence.get('searchesAttempted', 0)} "
          f"({evidence.get('searchesFailed', 0)} failed)")
    for field_name, counts in usage.items():
        summary = ", ".join(f"{source}={count}" for source, count in sorted(counts.items()))
        print(f"║   {field_name:<20}: {summary}")

    logger.info(
        "signals_summary_logged",
        project_id=project_id,
        estimator_mode=assumptions.get("estimatorMode"),
        searches_attempted=evidence.get("searchesAttempted", 0),
        searches_failed=evidence.get("searchesFailed", 0),
    )


def log_estimate_complete(
    project_id: str,
    estimate_id: str,
    grand_total: float,
    line_count: int,
    warnings: List[str],
    duration_ms: int,
) -> None:
    """Log estimate completion with totals and warnings."""
    print(RUN_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(RUN_BANNER_CHAR, "✓ ESTIMATE READY"))
    print(RUN_BANNER_CHAR * BANNER_WIDTH)
    print(f"║ Project ID  : {project_id}")
    print(f"║ Estimate ID : {estimate_id}")
    print(f"║ Lines       : {line_count}")
    print(f"║ Grand Total : ${grand_total:,.2f}")
    print(f"║ Duration    : {duration_ms:,} ms")
    if warnings:
        print(f"║ Warnings    : {len(warnings)}")
        for warning in warnings[:10]:
            print(f"║   - {warning}")
        if len(warnings) > 10:
            print(f"║   ... and {len(warnings) - 10} more")
    print(RUN_BANNER_CHAR * BANNER_WIDTH)
    print("\n")

    logger.info(
        "estimate_complete_logged",
        project_id=project_id,
        estimate_id=estimate_id,
        grand_total=round(grand_total, 2),
        lines=line_count,
        warnings=len(warnings),
        duration_ms=duration_ms,
    )


def log_estimate_failed(project_id: str, code: str, message: str) -> None:
    """Log estimate failure."""
    print("\n")
    print(FAILURE_BANNER_CHAR * BANNER_WIDTH)
    print(_create_banner(FAILURE_BANNER_CHAR, "✗ ESTIMATE FAILED"))
    print(FAILURE_BANNER_CHAR * BANNER_WIDTH)
    print(f"║ Project ID : {project_id}")
    print(f"║ Timestamp  : {_timestamp()}")
    print(f"║ Code       : {code}")
    print(f"║ Message    : {message}")
    print(FAILURE_BANNER_CHAR * BANNER_WIDTH)
    print("\n")

    logger.error("estimate_failed_logged", project_id=project_id, code=code, error=message)
