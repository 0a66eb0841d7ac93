"""
Connection diagnostics for both database credentials.

Each credential is checked with a trivial read and, when that works, a row
count of the core tables. Counts that fail are reported as None with an
error string; nothing here raises.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from core.config import settings
from core.database import DatabaseClientSelector, SessionFactory
from models import AgentEvent, Group, ObservationLog, PDP, Person, PracticeSession

logger = logging.getLogger(__name__)

TABLES_TO_CHECK = {
    "person": Person,
    "group": Group,
    "session": PracticeSession,
    "pdp": PDP,
    "agent_events": AgentEvent,
    "observation_logs": ObservationLog,
}


def describe_url(url: Optional[str]) -> Dict[str, Any]:
    """DSN summary with the password masked."""
    if not url:
        return {"configured": False}
    try:
        parsed = make_url(url)
    except ArgumentError:
        return {"configured": True, "valid": False}
    return {
        "configured": True,
        "valid": True,
        "driver": parsed.drivername,
        "host": parsed.host,
        "database": parsed.database,
        "username": parsed.username,
        "password_provided": bool(parsed.password),
        "url": parsed.render_as_string(hide_password=True),
    }


def check_credential(factory: SessionFactory, label: str) -> Dict[str, Any]:
    result: Dict[str, Any] = {"connection_test": False, "table_counts": {}, "errors": []}
    session = factory()
    try:
        try:
            session.execute(select(Person.id).limit(1))
        except Exception as e:
            session.rollback()
            result["errors"].append(f"{label} connection error: {e}")
            return result
        result["connection_test"] = True

        for table, model in TABLES_TO_CHECK.items():
            try:
                result["table_counts"][table] = session.execute(
                    select(func.count()).select_from(model)
                ).scalar_one()
            except Exception as e:
                session.rollback()
                result["table_counts"][table] = None
                result["errors"].append(f"{label} - {table} count error: {e}")
        return result
    finally:
        session.close()


def overall_status(anon_ok: bool, service_ok: bool) -> str:
    if anon_ok and service_ok:
        return "healthy"
    if anon_ok:
        return "anon_only"
    if service_ok:
        return "service_only"
    return "connection_failed"


def _recommendations(status: str, anon_url: Dict[str, Any], service_url: Dict[str, Any]) -> List[str]:
    recs = []
    if status == "connection_failed":
        recs.append("Check that DATABASE_URL points at a reachable database")
        recs.append("Verify the credentials for both DATABASE_URL and DATABASE_ANON_URL")
        recs.append("Ensure the server accepts connections from this host")
    elif status == "anon_only":
        recs.append("The service-role credentials in DATABASE_URL appear to be invalid")
    elif status == "service_only":
        recs.append("The restricted credentials in DATABASE_ANON_URL appear to be invalid")
    for name, info in (("DATABASE_ANON_URL", anon_url), ("DATABASE_URL", service_url)):
        if info.get("configured") and not info.get("valid"):
            recs.append(f"{name} is not a valid database URL")
    return recs


def run_connection_test(selector: DatabaseClientSelector) -> Dict[str, Any]:
    anon = check_credential(selector.restricted, "Anon key")
    service = check_credential(selector.privileged, "Service key")
    status = overall_status(anon["connection_test"], service["connection_test"])

    anon_url = describe_url(settings.anon_database_url)
    service_url = describe_url(settings.DATABASE_URL)
    if status != "healthy":
        logger.warning(
            "Database connection test degraded",
            extra={"extra_fields": {"overall_status": status}},
        )
    return {
        "results": {
            "anon_key": anon,
            "service_key": service,
            "overall_status": status,
            "tables_to_check": list(TABLES_TO_CHECK),
        },
        "diagnostics": {
            "connection_strings": {"anon": anon_url, "service": service_url},
            "recommendations": _recommendations(status, anon_url, service_url),
        },
        "overall_status": status,
    }
