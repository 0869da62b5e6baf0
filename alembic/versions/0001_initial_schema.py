"""initial_schema

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-12 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None


def soft_delete_columns():
    return [
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.text("FALSE")),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
    ]


def location_columns():
    return [
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
    ]


def create_indexes(table, columns):
    for column in columns:
        op.create_index(f'ix_{table}_{column}', table, [column])


def drop_indexes(table, columns):
    for column in columns:
        op.drop_index(f'ix_{table}_{column}', table_name=table)


INDEXES = {
    'users': ['username', 'email', 'role', 'status', 'password_reset_token_hash',
              'is_deleted', 'longitude', 'latitude'],
    'verification_documents': ['user_id'],
    'waste_logs': ['clinic_id', 'category', 'logged_at', 'is_deleted', 'longitude', 'latitude'],
    'pickup_requests': ['clinic_id', 'collector_id', 'waste_type', 'priority', 'status', 'is_emergency',
                        'requested_at', 'is_deleted', 'longitude', 'latitude'],
    'pickup_status_history': ['pickup_request_id'],
    'notifications': ['is_broadcast', 'user_id', 'status', 'type', 'priority', 'category', 'expires_at',
                      'created_at', 'is_deleted'],
    'notification_recipients': ['notification_id', 'user_id', 'status'],
    'reports': ['type', 'generated_by', 'status', 'next_run', 'created_at', 'is_deleted'],
    'audit_logs': ['action', 'severity', 'entity_type', 'entity_id', 'performed_by', 'created_at'],
}


def upgrade():
    """Create the MediClean schema."""

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(64), nullable=False),
        sa.Column('email', sa.String(256), nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(32), nullable=True),
        sa.Column('role', sa.String(32), nullable=False),
        sa.Column('status', sa.String(32), nullable=False, server_default='active'),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.text("TRUE")),
        sa.Column('is_verified', sa.Boolean(), nullable=True, server_default=sa.text("FALSE")),
        sa.Column('verified_at', sa.DateTime(), nullable=True),
        sa.Column('verified_by', sa.Integer(), nullable=True),
        sa.Column('street', sa.String(256), nullable=True),
        sa.Column('city', sa.String(128), nullable=True),
        sa.Column('state', sa.String(128), nullable=True),
        sa.Column('postal_code', sa.String(16), nullable=True),
        sa.Column('country', sa.String(128), nullable=True),
        sa.Column('service_radius_km', sa.Float(), nullable=True, server_default=sa.text("10")),
        sa.Column('operating_hours', sa.JSON(), nullable=True),
        sa.Column('notification_preferences', sa.JSON(), nullable=True),
        sa.Column('failed_login_attempts', sa.Integer(), nullable=True, server_default=sa.text("0")),
        sa.Column('account_locked_until', sa.DateTime(), nullable=True),
        sa.Column('last_login_at', sa.DateTime(), nullable=True),
        sa.Column('last_password_change', sa.DateTime(), nullable=True),
        sa.Column('password_reset_token_hash', sa.String(128), nullable=True),
        sa.Column('password_reset_expires_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        *soft_delete_columns(),
        *location_columns(),
        sa.ForeignKeyConstraint(['verified_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username'),
        sa.UniqueConstraint('email')
    )

    op.create_table(
        'verification_documents',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('doc_type', sa.String(32), nullable=False),
        sa.Column('number', sa.String(128), nullable=False),
        sa.Column('issued_by', sa.String(256), nullable=True),
        sa.Column('issued_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('status', sa.String(32), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'waste_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('clinic_id', sa.Integer(), nullable=False),
        sa.Column('category', sa.String(32), nullable=False),
        sa.Column('subcategory', sa.String(128), nullable=True),
        sa.Column('volume_kg', sa.Float(), nullable=False),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('handling_instructions', sa.Text(), nullable=True),
        sa.Column('storage_temperature_min', sa.Float(), nullable=True),
        sa.Column('storage_temperature_max', sa.Float(), nullable=True),
        sa.Column('storage_humidity_min', sa.Float(), nullable=True),
        sa.Column('storage_humidity_max', sa.Float(), nullable=True),
        sa.Column('storage_special_requirements', sa.Text(), nullable=True),
        sa.Column('container_type', sa.String(32), nullable=False),
        sa.Column('container_quantity', sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column('container_condition', sa.String(32), nullable=False, server_default='new'),
        sa.Column('images', sa.JSON(), nullable=True),
        sa.Column('logged_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        *soft_delete_columns(),
        *location_columns(),
        sa.ForeignKeyConstraint(['clinic_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'pickup_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('clinic_id', sa.Integer(), nullable=False),
        sa.Column('collector_id', sa.Integer(), nullable=True),
        sa.Column('waste_type', sa.String(32), nullable=False),
        sa.Column('volume_kg', sa.Float(), nullable=False),
        sa.Column('priority', sa.String(16), nullable=False, server_default='medium'),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('status', sa.String(16), nullable=False, server_default='pending'),
        sa.Column('is_scheduled', sa.Boolean(), nullable=True, server_default=sa.text("FALSE")),
        sa.Column('preferred_date', sa.DateTime(), nullable=True),
        sa.Column('preferred_time_start', sa.String(5), nullable=True),
        sa.Column('preferred_time_end', sa.String(5), nullable=True),
        sa.Column('is_emergency', sa.Boolean(), nullable=True, server_default=sa.text("FALSE")),
        sa.Column('emergency_reason', sa.String(500), nullable=True),
        sa.Column('response_deadline', sa.DateTime(), nullable=True),
        sa.Column('route_sequence', sa.Integer(), nullable=True),
        sa.Column('estimated_arrival', sa.DateTime(), nullable=True),
        sa.Column('estimated_duration_minutes', sa.Integer(), nullable=True),
        sa.Column('route_distance_km', sa.Float(), nullable=True),
        sa.Column('actual_weight', sa.Float(), nullable=True),
        sa.Column('container_count', sa.Integer(), nullable=True),
        sa.Column('photo_urls', sa.JSON(), nullable=True),
        sa.Column('clinic_staff_signature', sa.String(256), nullable=True),
        sa.Column('collector_signature', sa.String(256), nullable=True),
        sa.Column('signed_at', sa.DateTime(), nullable=True),
        sa.Column('collection_notes', sa.String(500), nullable=True),
        sa.Column('waste_segregation', sa.String(8), nullable=True),
        sa.Column('packaging_quality', sa.String(8), nullable=True),
        sa.Column('quality_comments', sa.String(500), nullable=True),
        sa.Column('requested_at', sa.DateTime(), nullable=True),
        sa.Column('collected_at', sa.DateTime(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('cancellation_reason', sa.String(500), nullable=True),
        sa.Column('cancelled_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        *soft_delete_columns(),
        *location_columns(),
        sa.ForeignKeyConstraint(['clinic_id'], ['users.id']),
        sa.ForeignKeyConstraint(['collector_id'], ['users.id']),
        sa.ForeignKeyConstraint(['cancelled_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'pickup_waste_logs',
        sa.Column('pickup_request_id', sa.Integer(), nullable=False),
        sa.Column('waste_log_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['pickup_request_id'], ['pickup_requests.id']),
        sa.ForeignKeyConstraint(['waste_log_id'], ['waste_logs.id']),
        sa.PrimaryKeyConstraint('pickup_request_id', 'waste_log_id')
    )

    op.create_table(
        'pickup_status_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('pickup_request_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(16), nullable=False),
        sa.Column('note', sa.String(200), nullable=True),
        sa.Column('changed_by', sa.Integer(), nullable=True),
        sa.Column('changed_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['pickup_request_id'], ['pickup_requests.id']),
        sa.ForeignKeyConstraint(['changed_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('is_broadcast', sa.Boolean(), nullable=True, server_default=sa.text("FALSE")),
        sa.Column('target_roles', sa.JSON(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(16), nullable=True),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('archived_at', sa.DateTime(), nullable=True),
        sa.Column('type', sa.String(64), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.String(2000), nullable=False),
        sa.Column('priority', sa.String(16), nullable=False, server_default='medium'),
        sa.Column('category', sa.String(32), nullable=False),
        sa.Column('channel', sa.String(16), nullable=False, server_default='in_app'),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('related_entity_type', sa.String(32), nullable=True),
        sa.Column('related_entity_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        *soft_delete_columns(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['created_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'notification_recipients',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('notification_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='unread'),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.Column('archived_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['notification_id'], ['notifications.id']),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('notification_id', 'user_id', name='uq_notification_recipient')
    )

    op.create_table(
        'reports',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(32), nullable=False),
        sa.Column('title', sa.String(256), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('parameters', sa.JSON(), nullable=True),
        sa.Column('format', sa.String(16), nullable=False),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('generated_by', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(16), nullable=False, server_default='pending'),
        sa.Column('error_code', sa.String(64), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('record_count', sa.Integer(), nullable=True),
        sa.Column('file_size', sa.Integer(), nullable=True),
        sa.Column('generation_time_ms', sa.Integer(), nullable=True),
        sa.Column('checksum', sa.String(64), nullable=True),
        sa.Column('frequency', sa.String(16), nullable=False, server_default='once'),
        sa.Column('next_run', sa.DateTime(), nullable=True),
        sa.Column('last_run', sa.DateTime(), nullable=True),
        sa.Column('recipients', sa.JSON(), nullable=True),
        sa.Column('retention_days', sa.Integer(), nullable=True, server_default=sa.text("30")),
        sa.Column('view_roles', sa.JSON(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        *soft_delete_columns(),
        sa.ForeignKeyConstraint(['generated_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(32), nullable=False),
        sa.Column('severity', sa.String(16), nullable=False, server_default='info'),
        sa.Column('entity_type', sa.String(32), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=True),
        sa.Column('performed_by', sa.Integer(), nullable=True),
        sa.Column('user_role', sa.String(32), nullable=True),
        sa.Column('status', sa.String(16), nullable=False, server_default='success'),
        sa.Column('changes', sa.JSON(), nullable=True),
        sa.Column('error_code', sa.String(64), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['performed_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )

    for table, columns in INDEXES.items():
        create_indexes(table, columns)


def downgrade():
    """Drop the MediClean schema."""
    for table, columns in INDEXES.items():
        drop_indexes(table, columns)

    for table in ('audit_logs', 'reports', 'notification_recipients', 'notifications',
                  'pickup_status_history', 'pickup_waste_logs', 'pickup_requests', 'waste_logs',
                  'verification_documents', 'users'):
        op.drop_table(table)
