"""Read-only health probe: connect, bind, base-scope search."""

import logging
from typing import List, Optional

from ldap3 import BASE

from ..models import HealthReport, StageResult
from .connection import DirectoryConnection, DirectoryConnector
from .errors import DirectoryError, translate_exception

logger = logging.getLogger(__name__)

STAGES = ("connect", "bind", "search")


def _describe(error: DirectoryError) -> str:
    if error.detail:
        return f"{error.code}: {error.detail}"
    return error.code


def probe(connector: DirectoryConnector) -> HealthReport:
    """
    Run connect -> bind -> search and report each stage.

    Bind uses the configured service account, or an anonymous bind when none
    is configured. The search reads the base DN itself with size limit 1.
    Once a stage fails the remaining ones are reported as skipped. Never
    raises.
    """
    config = connector.config
    stages: List[StageResult] = []
    conn: Optional[DirectoryConnection] = None
    try:
        try:
            conn = connector.connect(config.service_dn, config.service_password)
            stages.append(StageResult("connect", True, f"connected to {config.url}"))
        except Exception as e:
            stages.append(StageResult("connect", False, _describe(translate_exception(e))))
            return _finish(stages)

        try:
            conn.bind()
            who = config.service_dn or "anonymous"
            stages.append(StageResult("bind", True, f"bound as {who}"))
        except Exception as e:
            stages.append(StageResult("bind", False, _describe(translate_exception(e))))
            return _finish(stages)

        try:
            entries = conn.search(config.base_dn, "(objectClass=*)", scope=BASE, size_limit=1)
            if entries:
                stages.append(StageResult("search", True, f"base DN {config.base_dn} readable"))
            else:
                stages.append(StageResult("search", False, f"base DN {config.base_dn} not found"))
        except Exception as e:
            stages.append(StageResult("search", False, _describe(translate_exception(e))))
        return _finish(stages)
    finally:
        if conn is not None:
            conn.close()


def _finish(stages: List[StageResult]) -> HealthReport:
    done = {stage.name for stage in stages}
    for name in STAGES:
        if name not in done:
            stages.append(StageResult(name, False, "skipped"))
    reachable = bool(stages) and stages[0].ok
    report = HealthReport(reachable=reachable, stages=stages)
    if not report.healthy:
        failed = [f"{s.name}: {s.detail}" for s in stages if not s.ok and s.detail != "skipped"]
        logger.warning("Directory health check failed: %s", "; ".join(failed))
    return report
