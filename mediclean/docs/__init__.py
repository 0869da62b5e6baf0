"""OpenAPI/Swagger documentation for the MediClean API.

Flask-RESTX generates the interactive Swagger UI at /docs/swagger/ and the
OpenAPI document at /docs/swagger.json. The resources below only describe
the endpoints; requests are served by the blueprints in ``mediclean.routes``.
"""

from flask import Blueprint
from flask_restx import Api, Namespace, Resource, fields

from mediclean.domain.value_objects import (
    PickupStatus, Priority, ReportFormat, ReportType, UserRole, WasteCategory,
)

doc_bp = Blueprint('docs', __name__, url_prefix='/docs')

api = Api(
    doc_bp,
    version='1.0.0',
    title='MediClean API',
    description='''
    ## REST API for biomedical waste logistics

    Clinics log the hazardous waste they produce and request pickups. Admins
    assign the requests to licensed collectors, who collect them. Health
    authorities follow statistics, reports and the audit trail.

    ### Authentication:
    1. **Register** at `/api/v1/auth/register` or **login** at `/api/v1/auth/login`
    2. **Include** the access token in the `Authorization` header: `Bearer <token>`

    ### Rate Limits:
    - Authentication: 10 requests per minute
    - Reads: 500 requests per hour
    - Writes: 30 requests per hour
    - Bulk operations: 10 requests per hour
    - Analytics: 50 requests per hour
    - Emergency pickups: 5 requests per day

    ### Error Responses:
    ```json
    {
        "error": "Error description",
        "code": "ERROR_CODE",
        "details": {}
    }
    ```

    ### Base URL:
    All API endpoints are prefixed with `/api/v1/`
    ''',
    doc='/swagger/',
    contact='MediClean Team',
    authorizations={
        'Bearer': {
            'type': 'apiKey',
            'in': 'header',
            'name': 'Authorization',
            'description': 'JWT Authorization header. Example: "Bearer {token}"'
        }
    },
    security='Bearer'
)

# One namespace per API blueprint
auth_ns = Namespace('auth', description='Registration, login and password management')
users_ns = Namespace('users', description='Profiles, verification and collector search')
waste_ns = Namespace('waste', description='Waste logs produced by clinics')
pickup_ns = Namespace('pickup', description='Pickup requests and their lifecycle')
notifications_ns = Namespace('notifications', description='Individual and broadcast notifications')
reports_ns = Namespace('reports', description='Report generation, scheduling and export')
statistics_ns = Namespace('statistics', description='Dashboards and aggregated metrics')
audit_ns = Namespace('audit', description='Audit trail (admin only)')

for namespace, path in (
    (auth_ns, '/api/v1/auth'),
    (users_ns, '/api/v1/users'),
    (waste_ns, '/api/v1/waste'),
    (pickup_ns, '/api/v1/pickup'),
    (notifications_ns, '/api/v1/notifications'),
    (reports_ns, '/api/v1/reports'),
    (statistics_ns, '/api/v1/statistics'),
    (audit_ns, '/api/v1/audit'),
):
    api.add_namespace(namespace, path=path)

# =======================
# API Models (Schemas)
# =======================

error_response_model = api.model('ErrorResponse', {
    'error': fields.String(description='Error message'),
    'code': fields.String(description='Error code'),
    'details': fields.Raw(description='Additional error details')
})

location_model = api.model('Location', {
    'type': fields.String(default='Point'),
    'coordinates': fields.List(fields.Float, description='[longitude, latitude]')
})

login_model = api.model('Login', {
    'identifier': fields.String(required=True, description='Username or email'),
    'password': fields.String(required=True, description='Account password')
})

register_model = api.model('Register', {
    'username': fields.String(required=True, description='5+ characters: letters, digits, _ and -'),
    'email': fields.String(required=True, description='Valid email address'),
    'password': fields.String(required=True, description='8+ characters with upper, lower, digit and special'),
    'role': fields.String(description='Account role', enum=['clinic', 'collector', 'health']),
    'phone': fields.String(description='E.164 phone number'),
    'location': fields.Nested(location_model)
})

token_response_model = api.model('TokenResponse', {
    'access_token': fields.String(description='JWT access token'),
    'refresh_token': fields.String(description='JWT refresh token'),
    'token_type': fields.String(description='Token type', default='Bearer'),
    'expires_in': fields.Integer(description='Access token expiration time in seconds'),
    'user': fields.Raw(description='User information')
})

user_model = api.model('User', {
    'id': fields.Integer(readonly=True),
    'username': fields.String(),
    'email': fields.String(),
    'role': fields.String(enum=UserRole.values()),
    'status': fields.String(),
    'is_verified': fields.Boolean(),
    'created_at': fields.DateTime(readonly=True)
})

container_info_model = api.model('ContainerInfo', {
    'type': fields.String(required=True, enum=['bag', 'box', 'container', 'other']),
    'quantity': fields.Integer(default=1),
    'condition': fields.String(enum=['new', 'used', 'damaged'])
})

waste_log_model = api.model('WasteLog', {
    'category': fields.String(required=True, enum=WasteCategory.values()),
    'subcategory': fields.String(description='Required for category "others"'),
    'volume_kg': fields.Float(required=True, description='0 < volume <= 1000'),
    'description': fields.String(),
    'handling_instructions': fields.String(description='Required for biohazard and expired_meds'),
    'container_info': fields.Nested(container_info_model, required=True),
    'location': fields.Nested(location_model)
})

pickup_create_model = api.model('PickupCreate', {
    'waste_type': fields.String(required=True, enum=WasteCategory.values()),
    'volume_kg': fields.Float(required=True),
    'priority': fields.String(enum=Priority.values(), default='medium'),
    'description': fields.String(),
    'waste_log_ids': fields.List(fields.Integer),
    'scheduled_pickup': fields.Raw(description='is_scheduled, preferred_date, preferred_time_slot'),
    'emergency': fields.Raw(description='is_emergency, reason, response_deadline'),
    'location': fields.Nested(location_model)
})

pickup_update_model = api.model('PickupUpdate', {
    'status': fields.String(enum=PickupStatus.values()),
    'note': fields.String(description='History note, at most 200 characters'),
    'collector_id': fields.Integer(description='Required when status is assigned'),
    'cancellation_reason': fields.String(),
    'collection_details': fields.Raw(),
    'quality_control': fields.Raw()
})

bulk_status_model = api.model('BulkStatus', {
    'updates': fields.List(fields.Raw, required=True, description='[{id, status, note}], at most 50')
})

bulk_assign_model = api.model('BulkAssign', {
    'assignments': fields.List(fields.Raw, required=True,
                               description='[{pickup_id, collector_id, note}], at most 50')
})

notification_model = api.model('NotificationCreate', {
    'user_id': fields.Integer(required=True),
    'type': fields.String(required=True),
    'title': fields.String(required=True, description='3-200 characters'),
    'message': fields.String(required=True, description='10-2000 characters'),
    'priority': fields.String(enum=Priority.values()),
    'category': fields.String()
})

broadcast_model = api.inherit('BroadcastCreate', notification_model, {
    'target_roles': fields.List(fields.String(enum=UserRole.values()), required=True)
})

report_generate_model = api.model('ReportGenerate', {
    'type': fields.String(required=True, enum=ReportType.values()),
    'start_date': fields.DateTime(required=True),
    'end_date': fields.DateTime(required=True),
    'format': fields.String(enum=ReportFormat.values(), default='json'),
    'include_details': fields.Boolean(default=True),
    'clinic_id': fields.Integer(description='Required for clinic_performance'),
    'notify': fields.Boolean(default=False)
})

report_schedule_model = api.inherit('ReportSchedule', report_generate_model, {
    'frequency': fields.String(required=True, enum=['daily', 'weekly', 'monthly', 'quarterly']),
    'recipients': fields.List(fields.Integer),
    'start_at': fields.DateTime()
})

# =======================
# API Documentation Resources
# =======================


@auth_ns.route('/login')
class Login(Resource):
    @api.doc('login')
    @api.expect(login_model)
    @api.response(200, 'Login successful', token_response_model)
    @api.response(401, 'Invalid credentials or locked account', error_response_model)
    def post(self):
        """Authenticate with username or email

        The account is locked for 30 minutes after 5 failed attempts.
        """
        pass


@auth_ns.route('/register')
class Register(Resource):
    @api.doc('register')
    @api.expect(register_model)
    @api.response(201, 'Registration successful', token_response_model)
    @api.response(409, 'Username or email taken', error_response_model)
    def post(self):
        """Register a clinic, collector or health account"""
        pass


@users_ns.route('/')
class UsersCollection(Resource):
    @api.doc('search_users', params={'role': 'Filter by role', 'status': 'Filter by status',
                                     'q': 'Username or email fragment', 'page': 'Page', 'limit': 'Page size'})
    @api.response(200, 'Paginated users', user_model)
    def get(self):
        """Search users (admin)"""
        pass


@users_ns.route('/collectors/nearby')
class NearbyCollectors(Resource):
    @api.doc('nearby_collectors', params={'longitude': 'Longitude', 'latitude': 'Latitude',
                                          'radius_km': 'Radius in km, default 10'})
    def get(self):
        """Active, verified collectors near a point"""
        pass


@waste_ns.route('/')
class WasteCollection(Resource):
    @api.doc('create_waste_log')
    @api.expect(waste_log_model)
    @api.response(400, 'Validation Error', error_response_model)
    def post(self):
        """Log produced waste (clinic)"""
        pass

    @api.doc('list_waste_logs')
    def get(self):
        """List waste logs, newest first"""
        pass


@waste_ns.route('/<int:log_id>')
class WasteLogItem(Resource):
    @api.doc('update_waste_log')
    @api.expect(waste_log_model)
    @api.response(400, 'Edit window expired', error_response_model)
    def patch(self, log_id):
        """Edit a waste log within 24 hours of logging"""
        pass


@pickup_ns.route('/request')
class PickupRequestCreate(Resource):
    @api.doc('create_pickup')
    @api.expect(pickup_create_model)
    @api.response(400, 'Validation Error or active request limit', error_response_model)
    def post(self):
        """Request a pickup (clinic)"""
        pass


@pickup_ns.route('/emergency')
class EmergencyPickup(Resource):
    @api.doc('create_emergency_pickup')
    @api.expect(pickup_create_model)
    def post(self):
        """Request an urgent emergency pickup; admins are alerted"""
        pass


@pickup_ns.route('/<int:pickup_id>')
class PickupItem(Resource):
    @api.doc('update_pickup')
    @api.expect(pickup_update_model)
    @api.response(400, 'Invalid status transition', error_response_model)
    def patch(self, pickup_id):
        """Update a pickup request

        Status moves pending -> assigned -> collected, or to cancelled.
        """
        pass


@pickup_ns.route('/bulk/status')
class PickupBulkStatus(Resource):
    @api.doc('bulk_status')
    @api.expect(bulk_status_model)
    @api.response(400, 'No update applied; per item errors in details', error_response_model)
    def patch(self):
        """Change the status of many requests at once"""
        pass


@pickup_ns.route('/bulk/assign')
class PickupBulkAssign(Resource):
    @api.doc('bulk_assign')
    @api.expect(bulk_assign_model)
    def post(self):
        """Assign collectors to many pending requests (admin)"""
        pass


@notifications_ns.route('/')
class NotificationsCollection(Resource):
    @api.doc('create_notification')
    @api.expect(notification_model)
    def post(self):
        """Create a notification"""
        pass


@notifications_ns.route('/broadcast')
class Broadcast(Resource):
    @api.doc('broadcast')
    @api.expect(broadcast_model)
    def post(self):
        """Notify every active user of the target roles (admin, health)"""
        pass


@reports_ns.route('/generate')
class ReportGenerate(Resource):
    @api.doc('generate_report')
    @api.expect(report_generate_model)
    def post(self):
        """Generate a report"""
        pass


@reports_ns.route('/schedule')
class ReportSchedule(Resource):
    @api.doc('schedule_report')
    @api.expect(report_schedule_model)
    def post(self):
        """Schedule a recurring report (admin, health)"""
        pass


@reports_ns.route('/<int:report_id>/download')
class ReportDownload(Resource):
    @api.doc('download_report', params={'format': 'json, csv or excel'})
    def get(self, report_id):
        """Download a completed report"""
        pass


@statistics_ns.route('/dashboard')
class Dashboard(Resource):
    @api.doc('dashboard', params={'start_date': 'ISO date', 'end_date': 'ISO date'})
    def get(self):
        """Role-scoped dashboard, last 30 days by default"""
        pass


@statistics_ns.route('/clinics/<int:clinic_id>/performance')
class ClinicPerformance(Resource):
    @api.doc('clinic_performance')
    def get(self, clinic_id):
        """Compliance and performance scores of a clinic"""
        pass


@audit_ns.route('/')
class AuditCollection(Resource):
    @api.doc('search_audit', params={'action': 'Action', 'severity': 'Severity',
                                     'entity_type': 'Entity type', 'search': 'Text in changes'})
    def get(self):
        """Search the audit trail"""
        pass


def init_api_docs(app):
    """Register the documentation blueprint once."""
    if doc_bp.name not in app.blueprints:
        app.register_blueprint(doc_bp)

    return api
