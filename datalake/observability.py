"""Logging setup for operator (CLI) runs."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] [run=%(run_id)s] %(message)s"

# Factory in place before the first run; each run wraps this one, never the previous run's.
_base_record_factory = logging.getLogRecordFactory()


class _RunIdFilter(logging.Filter):
    """Stamp records that bypassed the record factory (e.g. made via makeLogRecord)."""

    def __init__(self, run_id: str) -> None:
        super().__init__()
        self.run_id = run_id

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003 - logging uses `filter` name
        if not hasattr(record, "run_id"):
            record.run_id = self.run_id
        return True


def coerce_log_level(level: str) -> int:
    name = (level or "").strip().upper()
    resolved = logging.getLevelName(name) if name else logging.INFO
    return resolved if isinstance(resolved, int) else logging.INFO


def _install_run_id(run_id: str) -> None:
    def record_factory(*args, **kwargs):  # type: ignore[no-untyped-def]
        record = _base_record_factory(*args, **kwargs)
        record.run_id = run_id
        return record

    logging.setLogRecordFactory(record_factory)

    for handler in logging.getLogger().handlers:
        for stale in [f for f in handler.filters if isinstance(f, _RunIdFilter)]:
            handler.removeFilter(stale)
        handler.addFilter(_RunIdFilter(run_id))


def configure_logging(*, run_id: str, level: str) -> logging.LoggerAdapter:
    """
    Configure logging for one CLI run.

    The root logger is only configured if nothing else configured it. Every record
    (datalake.* modules and botocore included) carries this run's run_id, also
    when several runs happen in one process.
    """
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(level=coerce_log_level(level), format=LOG_FORMAT)
    else:
        root.setLevel(coerce_log_level(level))

    _install_run_id(run_id)
    return logging.LoggerAdapter(logging.getLogger("datalake.cli"), {})
