"""
Mentor Applications Module

Handles the mentor application lifecycle:
1. Intake normalization of form, spreadsheet and API submissions
2. Deduplication (one pending or approved application per email)
3. Approval state machine (pending -> approved | rejected), driven by the
   reviewer API, the manual-review sheet and batch reprocessing
4. Mentor profile provisioning on approval, reconciled in the background

API Endpoints:
- POST /mentor-applications - Submit structured application
- POST /mentor-applications/form - Submit form answers
- GET /mentor-applications/{id}/status - Get application status
- /admin/mentor-applications/... - Reviewer queue, decisions, notes, batches

Background Jobs (via APScheduler):
- reconcile_mentor_provisioning: retries provisioning for approved applications
"""

from .jobs import register_mentor_application_jobs
from .router import router

__all__ = ["router", "register_mentor_application_jobs"]
