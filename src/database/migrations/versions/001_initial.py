"""
Initial migration - Create triage tables

Revision ID: 001_initial
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# Revision identifiers
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None

INCIDENT_TYPES = ('ACCIDENT', 'MEDICAL', 'FIRE', 'INFRASTRUCTURE', 'CRIME')
INCIDENT_STATUSES = ('UNVERIFIED', 'VERIFIED', 'IN_PROGRESS', 'RESOLVED', 'FALSE')
ROLES = ('PUBLIC', 'RESPONDER', 'ADMIN')
REPUTATION_TIERS = ('NEW', 'RELIABLE', 'TRUSTED')


def upgrade() -> None:
    """Create all tables."""

    # Create users table
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(100), nullable=False, unique=True),
        sa.Column('email', sa.String(100)),
        sa.Column('password_hash', sa.String(255)),
        sa.Column('role', sa.Enum(*ROLES, name='role'), nullable=False, server_default='PUBLIC'),
        sa.Column('reputation', sa.Enum(*REPUTATION_TIERS, name='reputationtier'),
                  nullable=False, server_default='NEW'),
        sa.Column('verified_reports', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('false_reports', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_index('ix_users_id', 'users', ['id'])

    # Create incidents table
    op.create_table(
        'incidents',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('incident_id', sa.String(32), nullable=False, unique=True),
        sa.Column('type', sa.Enum(*INCIDENT_TYPES, name='incidenttype'), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.Column('address', sa.String(500)),
        sa.Column('gps_accuracy', sa.Float()),
        sa.Column('image_url', sa.String(500)),
        sa.Column('status', sa.Enum(*INCIDENT_STATUSES, name='incidentstatus'),
                  nullable=False, server_default='UNVERIFIED'),
        sa.Column('confidence_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('confirmation_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('admin_notes', sa.Text()),
        sa.Column('reporter_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_index('ix_incidents_id', 'incidents', ['id'])
    op.create_index('idx_incident_location', 'incidents', ['latitude', 'longitude'])
    op.create_index('idx_incident_status', 'incidents', ['status'])
    op.create_index('idx_incident_created_at', 'incidents', ['created_at'])
    op.create_index('idx_incident_type_created_at', 'incidents', ['type', 'created_at'])

    # Create confirmations table
    op.create_table(
        'confirmations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('incident_id', sa.Integer(), sa.ForeignKey('incidents.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('incident_id', 'user_id', name='uq_confirmation_incident_user'),
    )

    op.create_index('ix_confirmations_id', 'confirmations', ['id'])

    # Create incident_timeline table
    op.create_table(
        'incident_timeline',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('incident_id', sa.Integer(), sa.ForeignKey('incidents.id'), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('status', postgresql.ENUM(*INCIDENT_STATUSES, name='incidentstatus', create_type=False),
                  nullable=False),
        sa.Column('notes', sa.Text()),
        sa.Column('updated_by_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('incident_id', 'sequence', name='uq_timeline_incident_sequence'),
    )

    op.create_index('ix_incident_timeline_id', 'incident_timeline', ['id'])
    op.create_index('idx_timeline_incident_status', 'incident_timeline', ['incident_id', 'status'])


def downgrade() -> None:
    """Drop all tables."""
    op.drop_table('incident_timeline')
    op.drop_table('confirmations')
    op.drop_table('incidents')
    op.drop_table('users')

    op.execute("DROP TYPE IF EXISTS incidentstatus")
    op.execute("DROP TYPE IF EXISTS incidenttype")
    op.execute("DROP TYPE IF EXISTS reputationtier")
    op.execute("DROP TYPE IF EXISTS role")
