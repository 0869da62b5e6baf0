"""Report service.

Generates waste, pickup and clinic performance reports into JSON
documents, renders them as JSON, CSV or Excel, and runs scheduled reports.
"""

import datetime
import hashlib
import json
import logging
import time
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError

from mediclean.domain.value_objects import (
    AuditAction, AuditSeverity, EntityType, NotificationCategory, NotificationType,
    Priority, ReportFormat, ReportFrequency, ReportStatus, ReportType, UserRole,
)
from mediclean.errors import AppError, AuthorizationError, InternalError, NotFoundError, ValidationError
from mediclean.models import PickupRequest, Report, User, WasteLog, add_months
from mediclean.utils.exports import to_csv, to_excel

from .common import ensure_role, found, has_role, pagination
from .statistics_service import StatisticsService

logger = logging.getLogger(__name__)

MIMETYPES = {
    ReportFormat.JSON.value: 'application/json',
    ReportFormat.CSV.value: 'text/csv',
    ReportFormat.EXCEL.value: 'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
}
EXTENSIONS = {ReportFormat.JSON.value: 'json', ReportFormat.CSV.value: 'csv', ReportFormat.EXCEL.value: 'xlsx'}


def _iso(value: Optional[datetime.datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def waste_row(log: WasteLog) -> Dict[str, Any]:
    return {
        'id': log.id,
        'clinic_id': log.clinic_id,
        'category': log.category,
        'subcategory': log.subcategory,
        'volume_kg': log.volume_kg,
        'container_type': log.container_type,
        'container_quantity': log.container_quantity,
        'logged_at': _iso(log.logged_at),
    }


def pickup_row(pickup: PickupRequest) -> Dict[str, Any]:
    return {
        'id': pickup.id,
        'clinic_id': pickup.clinic_id,
        'collector_id': pickup.collector_id,
        'waste_type': pickup.waste_type,
        'volume_kg': pickup.volume_kg,
        'priority': pickup.priority,
        'status': pickup.status,
        'is_emergency': pickup.is_emergency,
        'requested_at': _iso(pickup.requested_at),
        'collected_at': _iso(pickup.collected_at),
        'response_time_hours': pickup.response_time_hours,
    }


def lookback(frequency: ReportFrequency, now: datetime.datetime) -> datetime.datetime:
    """Start of the window a scheduled report covers when it runs at ``now``."""
    if frequency is ReportFrequency.DAILY:
        return now - datetime.timedelta(days=1)
    if frequency is ReportFrequency.WEEKLY:
        return now - datetime.timedelta(days=7)
    if frequency is ReportFrequency.MONTHLY:
        return add_months(now, -1)
    return add_months(now, -3)


class ReportService:
    """Business logic for reports."""

    def __init__(self, repos, statistics: StatisticsService, notifications=None, audit=None):
        """Initialize report service.

        Args:
            repos: RepositoryContainer (reports, users, waste_logs, pickups)
            statistics: StatisticsService used for report summaries
            notifications: NotificationService for report_ready messages
            audit: AuditService
        """
        self.repos = repos
        self.report_repo = repos.reports
        self.statistics = statistics
        self.notifications = notifications
        self.audit = audit

    # Generation -------------------------------------------------------------

    def _scoped_parameters(self, actor: User, report_type: ReportType,
                           payload: Dict[str, Any]) -> Dict[str, Any]:
        params = {
            'clinic_id': payload.get('clinic_id'),
            'collector_id': payload.get('collector_id'),
            'group_by': payload.get('group_by') or 'day',
            'include_details': payload.get('include_details', True),
        }
        if has_role(actor, UserRole.CLINIC):
            params['clinic_id'] = actor.id
        elif has_role(actor, UserRole.COLLECTOR):
            if report_type is not ReportType.PICKUP:
                raise AuthorizationError("Collectors can only generate pickup reports")
            params['collector_id'] = actor.id
        if report_type is ReportType.CLINIC_PERFORMANCE and not params['clinic_id']:
            raise ValidationError("clinic_id is required for clinic performance reports")
        return params

    def generate(self, actor: User, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Generate a one-off report.

        Args:
            actor: Requesting user
            payload: Validated body with type, start_date, end_date and
                optional title, description, format, include_details,
                clinic_id, collector_id, group_by, notify, view_roles, tags

        Returns:
            Serialized report, without its data

        Raises:
            ValidationError: On an invalid period or missing clinic
            AuthorizationError: If a collector asks for a non-pickup report
        """
        report_type = ReportType.from_string(payload['type'])
        start, end = payload['start_date'], payload['end_date']
        if end < start:
            raise ValidationError("end_date must not be before start_date")
        params = self._scoped_parameters(actor, report_type, payload)
        params.update({'start_date': start.isoformat(), 'end_date': end.isoformat()})

        report = Report(
            type=report_type.value,
            title=payload.get('title') or f"{report_type.value.replace('_', ' ').title()} Report",
            description=payload.get('description'),
            parameters=params,
            format=ReportFormat.from_string(payload.get('format', ReportFormat.JSON.value)).value,
            generated_by=actor.id,
            status=ReportStatus.PENDING.value,
            frequency=ReportFrequency.ONCE.value,
            retention_days=payload.get('retention_days', 30),
            view_roles=payload.get('view_roles') or [],
            tags=payload.get('tags') or [],
        )
        self.report_repo.add(report)
        self._run(report, actor, start, end)
        self._audit(AuditAction.CREATE, report, actor, {'type': report.type, 'format': report.format})
        if payload.get('notify'):
            self._notify_ready(report, [actor])
        return report.to_dict()

    def _run(self, report: Report, owner: User, start: datetime.datetime, end: datetime.datetime) -> Report:
        """Move ``report`` through generating to completed or failed."""
        report.status = ReportStatus.GENERATING.value
        report.error_code = report.error_message = None
        self.report_repo.save(report)
        started = time.perf_counter()
        try:
            document = self._build(report, owner, start, end)
        except (AppError, SQLAlchemyError) as e:
            if isinstance(e, AppError):
                report.error_code, report.error_message = e.code, e.message
            else:
                self.report_repo.db.rollback()
                report.error_code, report.error_message = 'GENERATION_FAILED', str(e)
            report.status = ReportStatus.FAILED.value
            self.report_repo.save(report)
            logger.error(f"Report {report.id} generation failed: {report.error_message}",
                         extra={"report_id": report.id, "type": report.type})
            if self.audit is not None:
                self.audit.log_action(AuditAction.CREATE, EntityType.REPORT, report.id, owner,
                                      status='failure', severity=AuditSeverity.ERROR,
                                      error_code=report.error_code, error_message=report.error_message)
            if isinstance(e, AppError):
                raise
            raise InternalError("Report generation failed") from e

        encoded = json.dumps(document, sort_keys=True, default=str).encode('utf-8')
        report.data = document
        report.record_count = len(document.get('details', []))
        report.file_size = len(encoded)
        report.checksum = hashlib.sha256(encoded).hexdigest()
        report.generation_time_ms = int((time.perf_counter() - started) * 1000)
        report.status = ReportStatus.COMPLETED.value
        self.report_repo.save(report)
        logger.info(
            f"Report {report.id} generated in {report.generation_time_ms} ms",
            extra={"report_id": report.id, "type": report.type, "records": report.record_count},
        )
        return report

    def _build(self, report: Report, owner: User, start: datetime.datetime,
               end: datetime.datetime) -> Dict[str, Any]:
        params = dict(report.parameters or {})
        params.update({'start_date': start, 'end_date': end})
        report_type = ReportType.from_string(report.type)

        if report_type is ReportType.WASTE:
            stats = self.statistics.waste_statistics(owner, params)
            summary = {**stats['summary'], 'category_breakdown': stats['category_breakdown'],
                       'volume_distribution': stats['volume_distribution']}
            filters = StatisticsService._waste_filters(owner, params)
            rows = [waste_row(log) for log in self.repos.waste_logs.find_all(filters)]
        elif report_type is ReportType.PICKUP:
            stats = self.statistics.pickup_statistics(owner, params)
            summary = {
                'total_requests': sum(item['count'] for item in stats['status_breakdown']),
                'status_breakdown': stats['status_breakdown'],
                'response_time': stats['response_time'],
                'volume_metrics': stats['volume_metrics'],
            }
            filters = StatisticsService._pickup_filters(owner, params)
            rows = [pickup_row(p) for p in self.repos.pickups.find_all(filters)]
        else:
            summary = self.statistics.clinic_performance(owner, params['clinic_id'], start, end)
            rows = [pickup_row(p) for p in self.repos.pickups.find_all(
                {'clinic_id': params['clinic_id'], 'start_date': start, 'end_date': end})]

        document = {
            'metadata': {
                'generated_at': datetime.datetime.utcnow().isoformat(),
                'report_type': report_type.value,
                'generated_by': owner.id,
                'period': {'from': start.isoformat(), 'to': end.isoformat()},
            },
            'summary': summary,
        }
        if params.get('include_details', True):
            document['details'] = rows
        return document

    def _notify_ready(self, report: Report, recipients: List[User]) -> None:
        if self.notifications is None:
            return
        for user in recipients:
            self.notifications.notify(
                user,
                NotificationType.REPORT_READY,
                "Report Ready",
                f"Report '{report.title}' is ready for download",
                priority=Priority.LOW,
                category=NotificationCategory.ADMINISTRATIVE,
                related=(EntityType.REPORT, report.id),
                data={'report_id': report.id, 'format': report.format},
            )

    # Access -----------------------------------------------------------------

    def _visible(self, actor: User, report_id: int) -> Report:
        report = found(self.report_repo.get_by_id(report_id), 'Report', report_id)
        allowed = (
            report.generated_by == actor.id
            or has_role(actor, UserRole.ADMIN, UserRole.HEALTH)
            or actor.role in (report.view_roles or [])
        )
        if not allowed:
            raise AuthorizationError("You do not have access to this report")
        return report

    def get(self, actor: User, report_id: int) -> Dict[str, Any]:
        return self._visible(actor, report_id).to_dict(include_data=True)

    def list(self, actor: User, filters: Dict[str, Any], page: int = 1, limit: int = 10) -> Dict[str, Any]:
        scoped = dict(filters)
        if not has_role(actor, UserRole.ADMIN):
            scoped['generated_by'] = actor.id
        reports, total = self.report_repo.list(scoped, page, limit)
        return {'reports': [r.to_dict() for r in reports], 'pagination': pagination(page, limit, total)}

    def download(self, actor: User, report_id: int,
                 fmt: Optional[str] = None) -> Tuple[Any, str, str]:
        """Render a completed report.

        Returns:
            Tuple of (body, mimetype, filename)

        Raises:
            ValidationError: If the report has not completed
        """
        report = self._visible(actor, report_id)
        if report.status != ReportStatus.COMPLETED.value or report.data is None:
            raise ValidationError(f"Report is {report.status}, not ready for download",
                                  code='REPORT_NOT_READY')
        fmt = ReportFormat.from_string(fmt or report.format).value
        if fmt == ReportFormat.CSV.value:
            body = to_csv(report.data)
        elif fmt == ReportFormat.EXCEL.value:
            body = to_excel(report.data)
        else:
            body = json.dumps(report.data, indent=2, default=str)
        self._audit(AuditAction.EXPORT, report, actor, {'format': fmt})
        filename = f"report_{report.id}_{report.type}.{EXTENSIONS[fmt]}"
        return body, MIMETYPES[fmt], filename

    def delete(self, actor: User, report_id: int) -> None:
        report = found(self.report_repo.get_by_id(report_id), 'Report', report_id)
        if report.generated_by != actor.id and not has_role(actor, UserRole.ADMIN):
            raise AuthorizationError("You can only delete your own reports")
        report.soft_delete()
        self.report_repo.save(report)
        self._audit(AuditAction.DELETE, report, actor)

    # Scheduling -------------------------------------------------------------

    def schedule(self, actor: User, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Create a recurring report definition."""
        ensure_role(actor, UserRole.ADMIN, UserRole.HEALTH)
        report_type = ReportType.from_string(payload['type'])
        frequency = ReportFrequency.from_string(payload['frequency'])
        if frequency.value not in ReportFrequency.schedulable():
            raise ValidationError("Frequency must be daily, weekly, monthly or quarterly")

        recipients = list(dict.fromkeys(payload.get('recipients') or [actor.id]))
        missing = sorted(set(recipients) - set(self.repos.users.get_existing_ids(recipients)))
        if missing:
            raise ValidationError("Unknown recipients", details={'recipients': missing})
        params = self._scoped_parameters(actor, report_type, payload)

        report = Report(
            type=report_type.value,
            title=payload.get('title') or f"Scheduled {report_type.value.replace('_', ' ')} report",
            description=payload.get('description'),
            parameters=params,
            format=ReportFormat.from_string(payload.get('format', ReportFormat.JSON.value)).value,
            generated_by=actor.id,
            status=ReportStatus.PENDING.value,
            frequency=frequency.value,
            recipients=recipients,
            retention_days=payload.get('retention_days', 30),
            view_roles=payload.get('view_roles') or [],
            tags=payload.get('tags') or [],
        )
        report.next_run = payload.get('start_at') or report.calculate_next_run()
        self.report_repo.add(report)
        self._audit(AuditAction.SCHEDULE, report, actor, {
            'frequency': frequency.value, 'next_run': _iso(report.next_run), 'recipients': recipients,
        })
        logger.info(f"Report {report.id} scheduled {frequency.value} by {actor.id}")
        return report.to_dict()

    def run_due(self, now: Optional[datetime.datetime] = None) -> Dict[str, Any]:
        """Generate every scheduled report whose next run has passed.

        A failing report is recorded as failed and does not stop the batch;
        its schedule still advances.
        """
        now = now or datetime.datetime.utcnow()
        processed, failed = [], []
        for report in self.report_repo.due_scheduled(now):
            owner = self.repos.users.get_by_id(report.generated_by)
            start = report.last_run or lookback(ReportFrequency.from_string(report.frequency), now)
            try:
                if owner is None:
                    raise NotFoundError("Report owner no longer exists")
                self._run(report, owner, start, now)
            except AppError as e:
                logger.warning(f"Scheduled report {report.id} failed: {e.message}")
                if report.status != ReportStatus.FAILED.value:
                    report.status = ReportStatus.FAILED.value
                    report.error_code, report.error_message = e.code, e.message
                failed.append(report.id)
            else:
                processed.append(report.id)
                recipients = [u for u in (self.repos.users.get_by_id(uid) for uid in report.recipients or [])
                              if u is not None and u.can_login]
                self._notify_ready(report, recipients)
            report.last_run = now
            report.next_run = report.calculate_next_run(now)
            self.report_repo.save(report)
        logger.info(f"Scheduled report run: {len(processed)} generated, {len(failed)} failed")
        return {'processed': processed, 'failed': failed}

    def cleanup_expired(self, now: Optional[datetime.datetime] = None) -> int:
        """Soft-delete one-off reports older than their retention period."""
        now = now or datetime.datetime.utcnow()
        expired = [r for r in self.report_repo.retention_candidates() if r.is_expired(now)]
        for report in expired:
            report.soft_delete()
        if expired:
            self.report_repo.db.commit()
        logger.info(f"Report cleanup removed {len(expired)} reports")
        return len(expired)

    def _audit(self, action, report, actor, changes=None) -> None:
        if self.audit is not None:
            self.audit.log_action(action, EntityType.REPORT, report.id, actor, changes)
