"""Validation schemas for API requests using Marshmallow.

Body schemas are applied with ``@validate_json``; query-string schemas with
``@validate_query``. Incoming datetimes are normalised to naive UTC, which
is how they are stored.
"""

import datetime
from typing import Any, Dict

from marshmallow import (
    EXCLUDE, Schema, ValidationError, fields, pre_load, validate, validates, validates_schema,
)

from mediclean.domain.rules import flatten_waste_log, pickup_request_errors, waste_log_errors
from mediclean.domain.trends import GROUP_BY_CHOICES
from mediclean.domain.value_objects import (
    AuditAction, AuditSeverity, ContainerCondition, ContainerType, DocumentType, EntityType,
    GeoPoint, NotificationCategory, NotificationChannel, NotificationStatus, NotificationType,
    PickupStatus, Priority, QualityRating, ReportFormat, ReportFrequency, ReportStatus,
    ReportType, TimeSlot, UserRole, UserStatus, WasteCategory,
)

PASSWORD_PATTERN = r'^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)(?=.*[@$!%*?&])[A-Za-z\d@$!%*?&]{8,}$'
PASSWORD_ERROR = ('Password must be at least 8 characters and contain an uppercase letter, '
                  'a lowercase letter, a number and a special character (@$!%*?&)')
PHONE_PATTERN = r'^\+?[1-9]\d{1,14}$'
POSTAL_CODE_PATTERN = r'^\d{5}(-\d{4})?$'
WEEKDAYS = ['monday', 'tuesday', 'wednesday', 'thursday', 'friday', 'saturday', 'sunday']

password_field = validate.Regexp(PASSWORD_PATTERN, error=PASSWORD_ERROR)


class UTCDateTime(fields.DateTime):
    """ISO datetime, converted to naive UTC."""

    def _deserialize(self, value, attr, data, **kwargs):
        moment = super()._deserialize(value, attr, data, **kwargs)
        if moment.tzinfo is not None:
            moment = moment.astimezone(datetime.timezone.utc).replace(tzinfo=None)
        return moment


def _future(value: datetime.datetime) -> None:
    if value <= datetime.datetime.utcnow():
        raise ValidationError('Date must be in the future')


class BaseSchema(Schema):
    class Meta:
        unknown = EXCLUDE


# =======================
# Shared pieces
# =======================


class LocationSchema(BaseSchema):
    """GeoJSON point: ``{"type": "Point", "coordinates": [lng, lat]}``."""

    type = fields.Str(load_default='Point', validate=validate.OneOf(['Point']))
    coordinates = fields.List(
        fields.Float(),
        required=True,
        validate=validate.Length(equal=2, error='Coordinates must be [longitude, latitude]'),
    )

    @validates_schema
    def validate_point(self, data: Dict[str, Any], **kwargs):
        try:
            GeoPoint.from_coordinates(data.get('coordinates'))
        except ValueError as e:
            raise ValidationError(str(e), field_name='coordinates')


class AddressSchema(BaseSchema):
    street = fields.Str(validate=validate.Length(max=200))
    city = fields.Str(validate=validate.Length(max=100))
    state = fields.Str(validate=validate.Length(max=100))
    postal_code = fields.Str(validate=validate.Regexp(POSTAL_CODE_PATTERN, error='Invalid postal code'))
    country = fields.Str(validate=validate.Length(max=100))


class PaginationSchema(BaseSchema):
    page = fields.Int(load_default=1, validate=validate.Range(min=1))
    limit = fields.Int(load_default=10, validate=validate.Range(min=1, max=100))


class DateRangeMixin:
    @validates_schema
    def validate_date_range(self, data: Dict[str, Any], **kwargs):
        start, end = data.get('start_date'), data.get('end_date')
        if start and end and end < start:
            raise ValidationError('end_date must not be before start_date', field_name='end_date')


class NearbySchema(BaseSchema):
    longitude = fields.Float(required=True, validate=validate.Range(min=-180, max=180))
    latitude = fields.Float(required=True, validate=validate.Range(min=-90, max=90))
    radius = fields.Float(load_default=None, validate=validate.Range(min=1, max=50000))


# =======================
# Auth & users
# =======================


class RegisterSchema(BaseSchema):
    """Schema for validating registration requests."""

    username = fields.Str(
        required=True,
        validate=[
            validate.Length(min=5, max=50),
            validate.Regexp(r'^[A-Za-z0-9_-]+$',
                            error='Username can only contain letters, numbers, underscores and hyphens'),
        ],
        error_messages={'required': 'Username is required'},
    )
    email = fields.Email(
        required=True,
        error_messages={'required': 'Email is required', 'invalid': 'Invalid email format'},
    )
    password = fields.Str(required=True, validate=password_field,
                          error_messages={'required': 'Password is required'})
    role = fields.Str(load_default=UserRole.CLINIC.value, validate=validate.OneOf(UserRole.values()))
    phone = fields.Str(validate=validate.Regexp(PHONE_PATTERN, error='Invalid phone number'))
    address = fields.Nested(AddressSchema)
    location = fields.Nested(LocationSchema)


class LoginSchema(BaseSchema):
    """Schema for validating login requests.

    ``identifier`` may be a username or an email; ``username`` and ``email``
    are accepted as aliases.
    """

    identifier = fields.Str(required=True, validate=validate.Length(min=3, max=254),
                            error_messages={'required': 'Username or email is required'})
    password = fields.Str(required=True, validate=validate.Length(min=1, max=128),
                          error_messages={'required': 'Password is required'})

    @pre_load
    def use_alias(self, data, **kwargs):
        if isinstance(data, dict) and 'identifier' not in data:
            alias = data.get('username') or data.get('email')
            if alias:
                data = {**data, 'identifier': alias}
        return data


class ForgotPasswordSchema(BaseSchema):
    email = fields.Email(required=True)


class ResetPasswordSchema(BaseSchema):
    token = fields.Str(required=True, validate=validate.Length(min=1))
    password = fields.Str(required=True, validate=password_field)


class ChangePasswordSchema(BaseSchema):
    current_password = fields.Str(required=True)
    new_password = fields.Str(required=True, validate=password_field)


class ProfileUpdateSchema(BaseSchema):
    phone = fields.Str(allow_none=True, validate=validate.Regexp(PHONE_PATTERN, error='Invalid phone number'))
    address = fields.Nested(AddressSchema)
    location = fields.Nested(LocationSchema)
    operating_hours = fields.Dict(keys=fields.Str(validate=validate.OneOf(WEEKDAYS)), values=fields.Raw())


class AdminUserUpdateSchema(BaseSchema):
    role = fields.Str(validate=validate.OneOf(UserRole.values()))
    status = fields.Str(validate=validate.OneOf(UserStatus.values()))

    @validates_schema
    def require_change(self, data: Dict[str, Any], **kwargs):
        if not data.get('role') and not data.get('status'):
            raise ValidationError('Provide a role or a status')


class NotificationPreferencesSchema(BaseSchema):
    preferences = fields.Dict(
        required=True,
        keys=fields.Str(validate=validate.OneOf(NotificationType.values())),
        values=fields.List(fields.Str(validate=validate.OneOf(
            [c for c in NotificationChannel.values() if c != NotificationChannel.ALL.value]))),
    )


class ServiceAreaSchema(BaseSchema):
    coordinates = fields.List(fields.Float(), required=True, validate=validate.Length(equal=2))
    radius_km = fields.Float(load_default=10, validate=validate.Range(min=1, max=100))

    @validates('coordinates')
    def validate_coordinates(self, value, **kwargs):
        try:
            GeoPoint.from_coordinates(value)
        except ValueError as e:
            raise ValidationError(str(e))


class DocumentSchema(BaseSchema):
    type = fields.Str(required=True, validate=validate.OneOf(DocumentType.values()))
    number = fields.Str(required=True, validate=validate.Length(min=1, max=100))
    issued_by = fields.Str(validate=validate.Length(max=200))
    issued_at = UTCDateTime()
    expires_at = UTCDateTime()

    @validates_schema
    def validate_dates(self, data: Dict[str, Any], **kwargs):
        issued, expires = data.get('issued_at'), data.get('expires_at')
        if issued and expires and expires <= issued:
            raise ValidationError('Expiry must be after issue date', field_name='expires_at')


class UserSearchSchema(PaginationSchema):
    role = fields.Str(validate=validate.OneOf(UserRole.values()))
    status = fields.Str(validate=validate.OneOf(UserStatus.values()))
    q = fields.Str(validate=validate.Length(max=100))


class CollectorNearbySchema(BaseSchema):
    longitude = fields.Float(required=True, validate=validate.Range(min=-180, max=180))
    latitude = fields.Float(required=True, validate=validate.Range(min=-90, max=90))
    radius_km = fields.Float(load_default=None, validate=validate.Range(min=0.1, max=100))


# =======================
# Waste logs
# =======================


class RangeSchema(BaseSchema):
    min = fields.Float(allow_none=True)
    max = fields.Float(allow_none=True)


class StorageConditionsSchema(BaseSchema):
    temperature = fields.Nested(RangeSchema)
    humidity = fields.Nested(RangeSchema)
    special_requirements = fields.Str(validate=validate.Length(max=500))


class ContainerInfoUpdateSchema(BaseSchema):
    """Partial container info; omitted keys keep their stored values."""

    type = fields.Str(validate=validate.OneOf(ContainerType.values()))
    quantity = fields.Int(validate=validate.Range(min=1))
    condition = fields.Str(validate=validate.OneOf(ContainerCondition.values()))


class ContainerInfoSchema(ContainerInfoUpdateSchema):
    type = fields.Str(required=True, validate=validate.OneOf(ContainerType.values()))
    quantity = fields.Int(load_default=1, validate=validate.Range(min=1))
    condition = fields.Str(load_default=ContainerCondition.NEW.value,
                           validate=validate.OneOf(ContainerCondition.values()))


class WasteLogCreateSchema(BaseSchema):
    """Schema for validating waste log creation."""

    category = fields.Str(required=True, validate=validate.OneOf(WasteCategory.values()),
                          error_messages={'required': 'Category is required'})
    subcategory = fields.Str(validate=validate.Length(max=100))
    volume_kg = fields.Float(
        required=True,
        validate=validate.Range(min=0, max=1000, min_inclusive=False,
                                error='Volume must be greater than 0 and at most 1000 kg'),
    )
    description = fields.Str(validate=validate.Length(max=500))
    handling_instructions = fields.Str(validate=validate.Length(max=1000))
    storage_conditions = fields.Nested(StorageConditionsSchema)
    container_info = fields.Nested(ContainerInfoSchema, required=True,
                                   error_messages={'required': 'Container info is required'})
    images = fields.List(fields.Url(), load_default=list)
    location = fields.Nested(LocationSchema)
    logged_at = UTCDateTime()

    @validates_schema
    def validate_rules(self, data: Dict[str, Any], **kwargs):
        errors = waste_log_errors(flatten_waste_log(data))
        if errors:
            raise ValidationError(errors)


class WasteLogUpdateSchema(BaseSchema):
    """Partial update; cross-field rules are checked on the merged record."""

    category = fields.Str(validate=validate.OneOf(WasteCategory.values()))
    subcategory = fields.Str(validate=validate.Length(max=100))
    volume_kg = fields.Float(validate=validate.Range(min=0, max=1000, min_inclusive=False))
    description = fields.Str(validate=validate.Length(max=500))
    handling_instructions = fields.Str(validate=validate.Length(max=1000))
    storage_conditions = fields.Nested(StorageConditionsSchema)
    container_info = fields.Nested(ContainerInfoUpdateSchema)
    images = fields.List(fields.Url())
    location = fields.Nested(LocationSchema)


class WasteLogQuerySchema(DateRangeMixin, PaginationSchema):
    category = fields.Str(validate=validate.OneOf(WasteCategory.values()))
    clinic_id = fields.Int(validate=validate.Range(min=1))
    start_date = UTCDateTime()
    end_date = UTCDateTime()
    min_volume = fields.Float(validate=validate.Range(min=0))
    max_volume = fields.Float(validate=validate.Range(min=0))


class WasteNearbySchema(NearbySchema):
    category = fields.Str(validate=validate.OneOf(WasteCategory.values()))


# =======================
# Pickup requests
# =======================


class TimeSlotSchema(BaseSchema):
    start = fields.Str(required=True)
    end = fields.Str(required=True)

    @validates_schema
    def validate_slot(self, data: Dict[str, Any], **kwargs):
        try:
            TimeSlot(data.get('start'), data.get('end'))
        except ValueError as e:
            raise ValidationError(str(e), field_name='start')


class ScheduledPickupUpdateSchema(BaseSchema):
    is_scheduled = fields.Bool()
    preferred_date = UTCDateTime()
    preferred_time_slot = fields.Nested(TimeSlotSchema)


class ScheduledPickupSchema(ScheduledPickupUpdateSchema):
    is_scheduled = fields.Bool(load_default=False)


class EmergencySchema(BaseSchema):
    is_emergency = fields.Bool(load_default=False)
    reason = fields.Str(validate=validate.Length(min=1, max=500))
    response_deadline = UTCDateTime()


def _pickup_rule_state(data: Dict[str, Any], force_emergency: bool = False) -> Dict[str, Any]:
    scheduled = data.get('scheduled_pickup') or {}
    emergency = data.get('emergency') or {}
    return {
        'is_scheduled': scheduled.get('is_scheduled'),
        'preferred_date': scheduled.get('preferred_date'),
        'is_emergency': force_emergency or emergency.get('is_emergency'),
        'emergency_reason': emergency.get('reason'),
        'response_deadline': emergency.get('response_deadline'),
    }


class PickupCreateSchema(BaseSchema):
    """Schema for validating pickup request creation."""

    force_emergency = False

    waste_type = fields.Str(required=True, validate=validate.OneOf(WasteCategory.values()),
                            error_messages={'required': 'Waste type is required'})
    volume_kg = fields.Float(
        required=True,
        validate=validate.Range(min=0, max=1000, min_inclusive=False,
                                error='Volume must be greater than 0 and at most 1000 kg'),
    )
    priority = fields.Str(load_default=Priority.MEDIUM.value, validate=validate.OneOf(Priority.values()))
    description = fields.Str(validate=validate.Length(max=500))
    waste_log_ids = fields.List(fields.Int(validate=validate.Range(min=1)), load_default=list)
    scheduled_pickup = fields.Nested(ScheduledPickupSchema)
    emergency = fields.Nested(EmergencySchema)
    location = fields.Nested(LocationSchema)

    @validates_schema
    def validate_rules(self, data: Dict[str, Any], **kwargs):
        errors = pickup_request_errors(_pickup_rule_state(data, self.force_emergency))
        if errors:
            raise ValidationError(errors)


class EmergencyPickupSchema(PickupCreateSchema):
    force_emergency = True

    emergency = fields.Nested(EmergencySchema, required=True,
                              error_messages={'required': 'Emergency details are required'})


class RouteDetailsSchema(BaseSchema):
    sequence = fields.Int(validate=validate.Range(min=0))
    estimated_arrival = UTCDateTime()
    estimated_duration = fields.Int(validate=validate.Range(min=0))
    distance = fields.Float(validate=validate.Range(min=0))


class SignatureSchema(BaseSchema):
    clinic_staff = fields.Str(validate=validate.Length(max=200))
    collector = fields.Str(validate=validate.Length(max=200))
    timestamp = UTCDateTime()


class CollectionDetailsSchema(BaseSchema):
    actual_weight = fields.Float(validate=validate.Range(min=0))
    container_count = fields.Int(validate=validate.Range(min=0))
    photos_urls = fields.List(fields.Url())
    signature = fields.Nested(SignatureSchema)
    notes = fields.Str(validate=validate.Length(max=1000))


class QualityControlSchema(BaseSchema):
    waste_segregation = fields.Str(validate=validate.OneOf(QualityRating.values()))
    packaging_quality = fields.Str(validate=validate.OneOf(QualityRating.values()))
    comments = fields.Str(validate=validate.Length(max=1000))


class PickupUpdateSchema(BaseSchema):
    """Status and/or detail changes; which fields a role may send is checked by the service."""

    status = fields.Str(validate=validate.OneOf(PickupStatus.values()))
    note = fields.Str(validate=validate.Length(max=200))
    collector_id = fields.Int(validate=validate.Range(min=1))
    cancellation_reason = fields.Str(validate=validate.Length(min=1, max=500))
    waste_type = fields.Str(validate=validate.OneOf(WasteCategory.values()))
    volume_kg = fields.Float(validate=validate.Range(min=0, max=1000, min_inclusive=False))
    description = fields.Str(validate=validate.Length(max=500))
    scheduled_pickup = fields.Nested(ScheduledPickupUpdateSchema)
    location = fields.Nested(LocationSchema)
    route_details = fields.Nested(RouteDetailsSchema)
    collection_details = fields.Nested(CollectionDetailsSchema)
    quality_control = fields.Nested(QualityControlSchema)


class AssignCollectorSchema(BaseSchema):
    collector_id = fields.Int(required=True, validate=validate.Range(min=1),
                              error_messages={'required': 'Collector ID is required'})
    note = fields.Str(validate=validate.Length(max=200))


class CancelPickupSchema(BaseSchema):
    reason = fields.Str(required=True, validate=validate.Length(min=1, max=500),
                        error_messages={'required': 'Cancellation reason is required'})


class PriorityUpdateSchema(BaseSchema):
    priority = fields.Str(required=True, validate=validate.OneOf(Priority.values()))
    note = fields.Str(validate=validate.Length(max=150))


class BulkStatusItemSchema(BaseSchema):
    id = fields.Int(required=True, validate=validate.Range(min=1))
    status = fields.Str(required=True, validate=validate.OneOf(PickupStatus.values()))
    note = fields.Str(validate=validate.Length(max=200))


class BulkStatusSchema(BaseSchema):
    updates = fields.List(fields.Nested(BulkStatusItemSchema), required=True,
                          validate=validate.Length(min=1, max=50))


class BulkAssignItemSchema(BaseSchema):
    pickup_id = fields.Int(required=True, validate=validate.Range(min=1))
    collector_id = fields.Int(required=True, validate=validate.Range(min=1))
    note = fields.Str(validate=validate.Length(max=200))


class BulkAssignSchema(BaseSchema):
    assignments = fields.List(fields.Nested(BulkAssignItemSchema), required=True,
                              validate=validate.Length(min=1, max=50))


class PickupQuerySchema(DateRangeMixin, PaginationSchema):
    status = fields.Str(validate=validate.OneOf(PickupStatus.values()))
    clinic_id = fields.Int(validate=validate.Range(min=1))
    collector_id = fields.Int(validate=validate.Range(min=1))
    waste_type = fields.Str(validate=validate.OneOf(WasteCategory.values()))
    priority = fields.Str(validate=validate.OneOf(Priority.values()))
    start_date = UTCDateTime()
    end_date = UTCDateTime()
    min_volume = fields.Float(validate=validate.Range(min=0))
    max_volume = fields.Float(validate=validate.Range(min=0))
    is_emergency = fields.Bool()
    is_scheduled = fields.Bool()
    is_overdue = fields.Bool()


class PickupNearbySchema(NearbySchema):
    status = fields.Str(validate=validate.OneOf(PickupStatus.values()))
    waste_type = fields.Str(validate=validate.OneOf(WasteCategory.values()))
    priority = fields.Str(validate=validate.OneOf(Priority.values()))


# =======================
# Notifications
# =======================


class RelatedEntitySchema(BaseSchema):
    type = fields.Str(required=True, validate=validate.OneOf(EntityType.values()))
    id = fields.Int(required=True, validate=validate.Range(min=1))


class NotificationContentSchema(BaseSchema):
    type = fields.Str(required=True, validate=validate.OneOf(NotificationType.values()))
    title = fields.Str(required=True, validate=validate.Length(min=3, max=200))
    message = fields.Str(required=True, validate=validate.Length(min=10, max=2000))
    priority = fields.Str(load_default=Priority.MEDIUM.value, validate=validate.OneOf(Priority.values()))
    category = fields.Str(load_default=NotificationCategory.OPERATIONAL.value,
                          validate=validate.OneOf(NotificationCategory.values()))
    channel = fields.Str(validate=validate.OneOf(NotificationChannel.values()))
    data = fields.Dict()
    expires_at = UTCDateTime(validate=_future)
    related_entity = fields.Nested(RelatedEntitySchema)


class NotificationCreateSchema(NotificationContentSchema):
    user_id = fields.Int(required=True, validate=validate.Range(min=1),
                         error_messages={'required': 'Recipient user_id is required'})


class BroadcastSchema(NotificationContentSchema):
    target_roles = fields.List(fields.Str(validate=validate.OneOf(UserRole.values())), required=True,
                               validate=validate.Length(min=1))


class NotificationQuerySchema(PaginationSchema):
    status = fields.Str(validate=validate.OneOf(NotificationStatus.values()))
    type = fields.Str(validate=validate.OneOf(NotificationType.values()))
    category = fields.Str(validate=validate.OneOf(NotificationCategory.values()))
    priority = fields.Str(validate=validate.OneOf(Priority.values()))
    include_expired = fields.Bool(load_default=False)


# =======================
# Reports & statistics
# =======================


class ReportOptionsSchema(BaseSchema):
    type = fields.Str(required=True, validate=validate.OneOf(ReportType.values()))
    title = fields.Str(validate=validate.Length(min=3, max=200))
    description = fields.Str(validate=validate.Length(max=1000))
    format = fields.Str(load_default=ReportFormat.JSON.value, validate=validate.OneOf(ReportFormat.values()))
    include_details = fields.Bool(load_default=True)
    clinic_id = fields.Int(validate=validate.Range(min=1))
    collector_id = fields.Int(validate=validate.Range(min=1))
    group_by = fields.Str(load_default='day', validate=validate.OneOf(GROUP_BY_CHOICES))
    retention_days = fields.Int(load_default=30, validate=validate.Range(min=1, max=365))
    view_roles = fields.List(fields.Str(validate=validate.OneOf(UserRole.values())), load_default=list)
    tags = fields.List(fields.Str(validate=validate.Length(max=50)), load_default=list)


class ReportGenerateSchema(DateRangeMixin, ReportOptionsSchema):
    start_date = UTCDateTime(required=True, error_messages={'required': 'Start date is required'})
    end_date = UTCDateTime(required=True, error_messages={'required': 'End date is required'})
    notify = fields.Bool(load_default=False)


class ReportScheduleSchema(ReportOptionsSchema):
    frequency = fields.Str(required=True, validate=validate.OneOf(ReportFrequency.schedulable()))
    recipients = fields.List(fields.Int(validate=validate.Range(min=1)), load_default=list)
    start_at = UTCDateTime(validate=_future)


class ReportQuerySchema(DateRangeMixin, PaginationSchema):
    type = fields.Str(validate=validate.OneOf(ReportType.values()))
    status = fields.Str(validate=validate.OneOf(ReportStatus.values()))
    start_date = UTCDateTime()
    end_date = UTCDateTime()


class ReportDownloadSchema(BaseSchema):
    format = fields.Str(validate=validate.OneOf(ReportFormat.values()))


class StatisticsQuerySchema(DateRangeMixin, BaseSchema):
    clinic_id = fields.Int(validate=validate.Range(min=1))
    collector_id = fields.Int(validate=validate.Range(min=1))
    category = fields.Str(validate=validate.OneOf(WasteCategory.values()))
    start_date = UTCDateTime()
    end_date = UTCDateTime()
    group_by = fields.Str(load_default='day', validate=validate.OneOf(GROUP_BY_CHOICES))


class DateRangeQuerySchema(DateRangeMixin, BaseSchema):
    start_date = UTCDateTime()
    end_date = UTCDateTime()


# =======================
# Audit
# =======================


class AuditQuerySchema(DateRangeMixin, PaginationSchema):
    action = fields.Str(validate=validate.OneOf(AuditAction.values()))
    status = fields.Str(validate=validate.OneOf(['success', 'failure']))
    severity = fields.Str(validate=validate.OneOf(AuditSeverity.values()))
    entity_type = fields.Str(validate=validate.OneOf(EntityType.values()))
    performed_by = fields.Int(validate=validate.Range(min=1))
    start_date = UTCDateTime()
    end_date = UTCDateTime()
    search = fields.Str(validate=validate.Length(min=1, max=100))


class AuditCriticalQuerySchema(PaginationSchema):
    days = fields.Int(validate=validate.Range(min=1, max=365))


class AuditCleanupSchema(BaseSchema):
    retention_days = fields.Int(validate=validate.Range(min=1, max=3650))


# Schema instances for reuse
register_schema = RegisterSchema()
login_schema = LoginSchema()
forgot_password_schema = ForgotPasswordSchema()
reset_password_schema = ResetPasswordSchema()
change_password_schema = ChangePasswordSchema()
profile_update_schema = ProfileUpdateSchema()
admin_user_update_schema = AdminUserUpdateSchema()
notification_preferences_schema = NotificationPreferencesSchema()
service_area_schema = ServiceAreaSchema()
document_schema = DocumentSchema()
user_search_schema = UserSearchSchema()
collector_nearby_schema = CollectorNearbySchema()

waste_log_create_schema = WasteLogCreateSchema()
waste_log_update_schema = WasteLogUpdateSchema()
waste_log_query_schema = WasteLogQuerySchema()
waste_nearby_schema = WasteNearbySchema()

pickup_create_schema = PickupCreateSchema()
emergency_pickup_schema = EmergencyPickupSchema()
pickup_update_schema = PickupUpdateSchema()
assign_collector_schema = AssignCollectorSchema()
cancel_pickup_schema = CancelPickupSchema()
priority_update_schema = PriorityUpdateSchema()
bulk_status_schema = BulkStatusSchema()
bulk_assign_schema = BulkAssignSchema()
pickup_query_schema = PickupQuerySchema()
pickup_nearby_schema = PickupNearbySchema()

notification_create_schema = NotificationCreateSchema()
broadcast_schema = BroadcastSchema()
notification_query_schema = NotificationQuerySchema()

report_generate_schema = ReportGenerateSchema()
report_schedule_schema = ReportScheduleSchema()
report_query_schema = ReportQuerySchema()
report_download_schema = ReportDownloadSchema()
statistics_query_schema = StatisticsQuerySchema()
date_range_query_schema = DateRangeQuerySchema()

audit_query_schema = AuditQuerySchema()
audit_critical_query_schema = AuditCriticalQuerySchema()
audit_cleanup_schema = AuditCleanupSchema()
