"""create intake meeting tables

Revision ID: 3c1d9a7e5b20
Revises:
Create Date: 2026-10-19 09:12:41.220315

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import sqlmodel

# revision identifiers, used by Alembic.
revision: str = '3c1d9a7e5b20'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

QUESTION_KIND = sa.Enum(
    'SHORT_TEXT', 'LONG_TEXT', 'SINGLE_SELECT', 'MULTI_SELECT', 'NUMERIC', 'DATE',
    name='questionkind',
)
SESSION_STATUS = sa.Enum('DRAFT', 'COMPLETED', 'FOLLOW_UP_NEEDED', name='sessionstatus')
INVITATION_STATUS = sa.Enum('SENT', 'FAILED', 'AUTH_SCOPE_ERROR', name='invitationstatus')


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'intake_meeting_templates',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('description', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('organization_id', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('is_default', sa.Boolean(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('usage_count', sa.Integer(), nullable=False),
        sa.Column('last_used_at', sa.DateTime(), nullable=True),
        sa.Column('created_by', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_intake_meeting_templates_name', 'intake_meeting_templates', ['name'])
    op.create_index('ix_intake_meeting_templates_organization_id', 'intake_meeting_templates', ['organization_id'])
    op.create_index('ix_intake_meeting_templates_is_default', 'intake_meeting_templates', ['is_default'])
    op.create_index('ix_intake_meeting_templates_is_active', 'intake_meeting_templates', ['is_active'])
    op.create_index(
        'uq_intake_meeting_templates_org_default', 'intake_meeting_templates', ['organization_id'],
        unique=True,
        postgresql_where=sa.text('is_default AND organization_id IS NOT NULL'),
        sqlite_where=sa.text('is_default AND organization_id IS NOT NULL'),
    )
    op.create_index(
        'uq_intake_meeting_templates_global_default', 'intake_meeting_templates', ['is_default'],
        unique=True,
        postgresql_where=sa.text('is_default AND organization_id IS NULL'),
        sqlite_where=sa.text('is_default AND organization_id IS NULL'),
    )

    op.create_table(
        'intake_meeting_questions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('template_id', sa.Uuid(), nullable=False),
        sa.Column('question', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('kind', QUESTION_KIND, nullable=False),
        sa.Column('category', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('section', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('required', sa.Boolean(), nullable=False),
        sa.Column('order', sa.Integer(), nullable=False),
        sa.Column('placeholder', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('help_text', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('options', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['template_id'], ['intake_meeting_templates.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_intake_meeting_questions_template_id', 'intake_meeting_questions', ['template_id'])
    op.create_index('ix_intake_meeting_questions_category', 'intake_meeting_questions', ['category'])
    op.create_index('ix_intake_meeting_questions_order', 'intake_meeting_questions', ['order'])

    op.create_table(
        'intake_meeting_sessions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('template_id', sa.Uuid(), nullable=True),
        sa.Column('template_snapshot', sa.JSON(), nullable=True),
        sa.Column('client_id', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('conducted_by', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('status', SESSION_STATUS, nullable=False),
        sa.Column('scheduled_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('follow_up_actions', sa.JSON(), nullable=True),
        sa.Column('attendees', sa.JSON(), nullable=True),
        sa.Column('responses', sa.JSON(), nullable=True),
        sa.Column('job_description', sa.JSON(), nullable=True),
        sa.Column('interview_templates', sa.JSON(), nullable=True),
        sa.Column('generation_token', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('generation_started_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_intake_meeting_sessions_template_id', 'intake_meeting_sessions', ['template_id'])
    op.create_index('ix_intake_meeting_sessions_client_id', 'intake_meeting_sessions', ['client_id'])
    op.create_index('ix_intake_meeting_sessions_status', 'intake_meeting_sessions', ['status'])
    op.create_index('ix_intake_meeting_sessions_scheduled_at', 'intake_meeting_sessions', ['scheduled_at'])

    op.create_table(
        'intake_meeting_invitations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('session_id', sa.Uuid(), nullable=False),
        sa.Column('email', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('scheduled_for', sa.DateTime(), nullable=False),
        sa.Column('meeting_link', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('status', INVITATION_STATUS, nullable=False),
        sa.Column('error', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('provider_message_id', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['session_id'], ['intake_meeting_sessions.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_intake_meeting_invitations_session_id', 'intake_meeting_invitations', ['session_id'])
    op.create_index('ix_intake_meeting_invitations_email', 'intake_meeting_invitations', ['email'])
    op.create_index('ix_intake_meeting_invitations_status', 'intake_meeting_invitations', ['status'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('intake_meeting_invitations')
    op.drop_table('intake_meeting_sessions')
    op.drop_table('intake_meeting_questions')
    op.drop_table('intake_meeting_templates')
    INVITATION_STATUS.drop(op.get_bind(), checkfirst=True)
    SESSION_STATUS.drop(op.get_bind(), checkfirst=True)
    QUESTION_KIND.drop(op.get_bind(), checkfirst=True)
