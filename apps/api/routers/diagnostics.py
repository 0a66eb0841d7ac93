"""
Diagnostics API Router

Connection test for both database credentials: connectivity, core table
counts, overall status and recommended fixes. Never raises; failures are
reported in the body.
"""

from fastapi import APIRouter, Depends

from core.database import DatabaseClientSelector, get_client_selector
from services.connection_diagnostics import run_connection_test

router = APIRouter(prefix="/api", tags=["Diagnostics"])


@router.get("/test-connection")
def test_connection(selector: DatabaseClientSelector = Depends(get_client_selector)):
    report = run_connection_test(selector)
    status = report["overall_status"]
    return {
        "success": status != "connection_failed",
        "message": f"Database connection test: {status}",
        "results": report["results"],
        "diagnostics": report["diagnostics"],
        "using_service_role": selector.using_service_role,
    }
