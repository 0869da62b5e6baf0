"""Validation module for API input validation.

Provides Marshmallow schemas for all API endpoints.
"""

from .schemas import (
    RegisterSchema, LoginSchema, WasteLogCreateSchema, PickupCreateSchema,
    EmergencyPickupSchema, PickupUpdateSchema, NotificationCreateSchema, BroadcastSchema,
    ReportGenerateSchema, ReportScheduleSchema, UTCDateTime,
    register_schema, login_schema, waste_log_create_schema, pickup_create_schema,
    emergency_pickup_schema, pickup_update_schema, notification_create_schema,
    broadcast_schema, report_generate_schema, report_schedule_schema,
)

__all__ = [
    'RegisterSchema', 'LoginSchema', 'WasteLogCreateSchema', 'PickupCreateSchema',
    'EmergencyPickupSchema', 'PickupUpdateSchema', 'NotificationCreateSchema', 'BroadcastSchema',
    'ReportGenerateSchema', 'ReportScheduleSchema', 'UTCDateTime',
    'register_schema', 'login_schema', 'waste_log_create_schema', 'pickup_create_schema',
    'emergency_pickup_schema', 'pickup_update_schema', 'notification_create_schema',
    'broadcast_schema', 'report_generate_schema', 'report_schedule_schema',
]
