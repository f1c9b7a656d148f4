"""Initial HSE portal schema

Revision ID: 001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id():
    return sa.Column('id', sa.String(36), nullable=False)


def _company_id(index: bool = False):
    return sa.Column(
        'company_id', sa.String(36), sa.ForeignKey('companies.id', ondelete='CASCADE'),
        nullable=False, index=index,
    )


def _created_at():
    return sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False)


def upgrade() -> None:
    # Tenants and accounts
    op.create_table('companies',
        _id(),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('phone', sa.String(), nullable=True),
        sa.Column('address', sa.String(), nullable=True),
        sa.Column('subscription_tier', sa.String(), nullable=False, server_default='basic'),
        sa.Column('subscription_status', sa.String(), nullable=False, server_default='trial'),
        sa.Column('max_employees', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('subscription_start_date', sa.Date(), nullable=True),
        sa.Column('subscription_end_date', sa.Date(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_companies_email', 'companies', ['email'])
    op.create_index('ix_companies_created_at', 'companies', ['created_at'])

    op.create_table('users',
        _id(),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('hashed_password', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table('user_roles',
        _id(),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('role', sa.String(), nullable=False, server_default='employee'),
        sa.Column('company_id', sa.String(36), sa.ForeignKey('companies.id', ondelete='SET NULL'), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id'),
    )
    op.create_index('idx_user_roles_company', 'user_roles', ['company_id'])

    # Organisation
    op.create_table('departments',
        _id(),
        _company_id(index=True),
        sa.Column('name', sa.String(), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table('job_roles',
        _id(),
        _company_id(index=True),
        sa.Column('title', sa.String(), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table('exposure_groups',
        _id(),
        _company_id(index=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table('activity_groups',
        _id(),
        _company_id(index=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table('employees',
        _id(),
        _company_id(),
        sa.Column('employee_number', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=True),
        sa.Column('hire_date', sa.Date(), nullable=True),
        sa.Column('department_id', sa.String(36), sa.ForeignKey('departments.id', ondelete='SET NULL'), nullable=True),
        sa.Column('job_role_id', sa.String(36), sa.ForeignKey('job_roles.id', ondelete='SET NULL'), nullable=True),
        sa.Column('exposure_group_id', sa.String(36), sa.ForeignKey('exposure_groups.id', ondelete='SET NULL'), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('profile_fields', sa.JSON(), nullable=False),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'employee_number', name='uq_employees_company_number'),
    )
    op.create_index('idx_employees_company_active', 'employees', ['company_id', 'is_active'])

    op.create_table('employee_notes',
        _id(),
        _company_id(),
        sa.Column('employee_id', sa.String(36), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('author_id', sa.String(36), nullable=True),
        sa.Column('author_name', sa.String(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('parent_reply_id', sa.String(36), sa.ForeignKey('employee_notes.id', ondelete='CASCADE'), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_employee_notes_employee_created', 'employee_notes', ['employee_id', 'created_at'])

    op.create_table('employee_activity_logs',
        _id(),
        _company_id(),
        sa.Column('employee_id', sa.String(36), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('action_type', sa.String(), nullable=False),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('actor_id', sa.String(36), nullable=True),
        sa.Column('actor_name', sa.String(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_activity_logs_employee_created', 'employee_activity_logs', ['employee_id', 'created_at'])

    # Safety records
    for category_table in ('audit_categories', 'risk_categories'):
        op.create_table(category_table,
            _id(),
            _company_id(index=True),
            sa.Column('name', sa.String(), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            _created_at(),
            sa.PrimaryKeyConstraint('id'),
        )
    op.create_table('audits',
        _id(),
        _company_id(index=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('audit_type', sa.String(), nullable=True),
        sa.Column('category_id', sa.String(36), sa.ForeignKey('audit_categories.id', ondelete='SET NULL'), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='planned'),
        sa.Column('auditor_id', sa.String(36), sa.ForeignKey('employees.id', ondelete='SET NULL'), nullable=True),
        sa.Column('scheduled_date', sa.Date(), nullable=True),
        sa.Column('completed_date', sa.Date(), nullable=True),
        sa.Column('findings', sa.Text(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table('audit_checklist_items',
        _id(),
        _company_id(index=True),
        sa.Column('audit_id', sa.String(36), sa.ForeignKey('audits.id', ondelete='CASCADE'), nullable=False),
        sa.Column('section', sa.String(), nullable=True),
        sa.Column('question', sa.Text(), nullable=False),
        sa.Column('order_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('notes', sa.Text(), nullable=True),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_audit_checklist_items_audit_id', 'audit_checklist_items', ['audit_id'])
    op.create_table('risk_assessments',
        _id(),
        _company_id(index=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('activity_group_id', sa.String(36), sa.ForeignKey('activity_groups.id', ondelete='SET NULL'), nullable=True),
        sa.Column('category_id', sa.String(36), sa.ForeignKey('risk_categories.id', ondelete='SET NULL'), nullable=True),
        sa.Column('risk_level', sa.String(), nullable=True),
        sa.Column('risk_score', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='draft'),
        sa.Column('assessment_date', sa.Date(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_risk_assessments_created_at', 'risk_assessments', ['created_at'])
    op.create_table('incidents',
        _id(),
        _company_id(index=True),
        sa.Column('incident_number', sa.String(), nullable=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('incident_type', sa.String(), nullable=False, server_default='other'),
        sa.Column('severity', sa.String(), nullable=False, server_default='minor'),
        sa.Column('incident_date', sa.Date(), nullable=False),
        sa.Column('location', sa.String(), nullable=True),
        sa.Column('affected_employee_id', sa.String(36), sa.ForeignKey('employees.id', ondelete='SET NULL'), nullable=True),
        sa.Column('investigation_status', sa.String(), nullable=False, server_default='open'),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_incidents_incident_date', 'incidents', ['incident_date'])
    op.create_table('investigations',
        _id(),
        _company_id(index=True),
        sa.Column('investigation_code', sa.String(), nullable=False),
        sa.Column('g_code', sa.String(), nullable=True),
        sa.Column('related_incident_id', sa.String(36), sa.ForeignKey('incidents.id', ondelete='SET NULL'), nullable=True),
        sa.Column('assigned_to_id', sa.String(36), sa.ForeignKey('employees.id', ondelete='SET NULL'), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='open'),
        sa.Column('priority', sa.String(), nullable=False, server_default='medium'),
        sa.Column('start_date', sa.Date(), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('appointment_date', sa.Date(), nullable=True),
        sa.Column('doctor', sa.String(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('findings', sa.Text(), nullable=True),
        sa.Column('recommendations', sa.Text(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table('measures',
        _id(),
        _company_id(index=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('measure_type', sa.String(), nullable=False, server_default='preventive'),
        sa.Column('status', sa.String(), nullable=False, server_default='planned'),
        sa.Column('risk_assessment_id', sa.String(36), sa.ForeignKey('risk_assessments.id', ondelete='SET NULL'), nullable=True),
        sa.Column('audit_id', sa.String(36), sa.ForeignKey('audits.id', ondelete='SET NULL'), nullable=True),
        sa.Column('incident_id', sa.String(36), sa.ForeignKey('incidents.id', ondelete='SET NULL'), nullable=True),
        sa.Column('responsible_person_id', sa.String(36), sa.ForeignKey('employees.id', ondelete='SET NULL'), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('completion_date', sa.Date(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )

    # Training and activities
    op.create_table('training_types',
        _id(),
        _company_id(index=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('validity_months', sa.Integer(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table('training_records',
        _id(),
        _company_id(index=True),
        sa.Column('employee_id', sa.String(36), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('training_type_id', sa.String(36), sa.ForeignKey('training_types.id', ondelete='CASCADE'), nullable=False),
        sa.Column('status', sa.String(), nullable=False, server_default='required'),
        sa.Column('completion_date', sa.Date(), nullable=True),
        sa.Column('expiry_date', sa.Date(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('company_id', 'employee_id', 'training_type_id', name='uq_training_records_assignment'),
    )
    op.create_table('courses',
        _id(),
        _company_id(index=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table('course_lessons',
        _id(),
        _company_id(index=True),
        sa.Column('course_id', sa.String(36), sa.ForeignKey('courses.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('lesson_type', sa.String(), nullable=False, server_default='text'),
        sa.Column('content_url', sa.String(), nullable=True),
        sa.Column('content_data', sa.JSON(), nullable=True),
        sa.Column('order_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(), nullable=False, server_default='draft'),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_course_lessons_course_id', 'course_lessons', ['course_id'])
    op.create_table('employee_activity_assignments',
        _id(),
        _company_id(index=True),
        sa.Column('employee_id', sa.String(36), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('activity_group_id', sa.String(36), sa.ForeignKey('activity_groups.id', ondelete='CASCADE'), nullable=False),
        sa.Column('assigned_date', sa.Date(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table('activity_training_requirements',
        _id(),
        _company_id(index=True),
        sa.Column('activity_group_id', sa.String(36), sa.ForeignKey('activity_groups.id', ondelete='CASCADE'), nullable=False),
        sa.Column('training_type_id', sa.String(36), sa.ForeignKey('training_types.id', ondelete='CASCADE'), nullable=False),
        sa.Column('is_mandatory', sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )

    # Work items
    op.create_table('tasks',
        _id(),
        _company_id(),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('assigned_to', sa.String(36), sa.ForeignKey('employees.id', ondelete='SET NULL'), nullable=True),
        sa.Column('audit_id', sa.String(36), sa.ForeignKey('audits.id', ondelete='SET NULL'), nullable=True),
        sa.Column('priority', sa.String(), nullable=False, server_default='medium'),
        sa.Column('status', sa.String(), nullable=False, server_default='pending'),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('status_revision', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('status_set_revision', sa.BigInteger(), nullable=False, server_default='0'),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_tasks_assigned_to', 'tasks', ['assigned_to'])
    op.create_index('idx_tasks_company_status', 'tasks', ['company_id', 'status'])

    op.create_table('health_checkups',
        _id(),
        _company_id(),
        sa.Column('employee_id', sa.String(36), sa.ForeignKey('employees.id', ondelete='CASCADE'), nullable=False),
        sa.Column('investigation_name', sa.String(), nullable=False),
        sa.Column('appointment_date', sa.Date(), nullable=True),
        sa.Column('completion_date', sa.Date(), nullable=True),
        sa.Column('status', sa.String(), nullable=False, server_default='planned'),
        sa.Column('certificate_path', sa.String(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_health_checkups_employee', 'health_checkups', ['company_id', 'employee_id'])

    op.create_table('documents',
        _id(),
        _company_id(),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('category', sa.String(), nullable=False, server_default='other'),
        sa.Column('file_name', sa.String(), nullable=False),
        sa.Column('file_path', sa.String(), nullable=False),
        sa.Column('file_size', sa.Integer(), nullable=True),
        sa.Column('mime_type', sa.String(), nullable=True),
        sa.Column('uploaded_by', sa.String(36), nullable=True),
        sa.Column('employee_id', sa.String(36), sa.ForeignKey('employees.id', ondelete='SET NULL'), nullable=True),
        sa.Column('expiry_date', sa.Date(), nullable=True),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('tags', sa.JSON(), nullable=False),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('file_path'),
    )
    op.create_index('idx_documents_company_category', 'documents', ['company_id', 'category'])
    op.create_index('idx_documents_employee', 'documents', ['employee_id'])

    op.create_table('notifications',
        _id(),
        _company_id(),
        sa.Column('user_id', sa.String(36), nullable=True),
        sa.Column('sender_name', sa.String(), nullable=True),
        sa.Column('category', sa.String(), nullable=False, server_default='system'),
        sa.Column('type', sa.String(), nullable=False, server_default='info'),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('channel', sa.String(), nullable=True),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('idx_notifications_company_channel', 'notifications', ['company_id', 'category', 'channel'])


def downgrade() -> None:
    for table in (
        'notifications',
        'documents',
        'health_checkups',
        'tasks',
        'activity_training_requirements',
        'employee_activity_assignments',
        'course_lessons',
        'courses',
        'training_records',
        'training_types',
        'measures',
        'investigations',
        'incidents',
        'risk_assessments',
        'audit_checklist_items',
        'audits',
        'risk_categories',
        'audit_categories',
        'employee_activity_logs',
        'employee_notes',
        'employees',
        'activity_groups',
        'exposure_groups',
        'job_roles',
        'departments',
        'user_roles',
        'users',
        'companies',
    ):
        op.drop_table(table)
