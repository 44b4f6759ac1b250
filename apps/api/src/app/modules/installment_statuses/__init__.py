"""
Installment Statuses Module

Automated pending -> overdue transitions for every agency, using each
agency's timezone and overdue cutoff time.

API Endpoints:
- POST /jobs/update-installment-statuses - Run the job (X-API-Key)
- GET /jobs/update-installment-statuses/preview/{agency_id} - Dry run

Background Jobs (via APScheduler):
- installment_statuses_update: Daily at 07:00 UTC when scheduling is enabled

CLI:
- python -m app.modules.installment_statuses.cli
"""

from .jobs import register_installment_status_jobs
from .router import router

__all__ = ["router", "register_installment_status_jobs"]
