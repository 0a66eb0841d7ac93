"""initial coaching schema

Revision ID: 0001
Revises:
Create Date: 2025-05-20 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _json():
    return postgresql.JSONB(astext_type=sa.Text())


def _created_at():
    return sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False)


def upgrade() -> None:
    op.create_table(
        'person',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('display_name', sa.Text(), nullable=True),
        sa.Column('first_name', sa.Text(), nullable=True),
        sa.Column('last_name', sa.Text(), nullable=True),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('roles', _json(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column('aliases', _json(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column('advancement_level', sa.Integer(), nullable=True),
        sa.Column('responsibility_tier', sa.Integer(), nullable=True),
        sa.Column('collective_growth_phase', sa.Integer(), nullable=True),
        sa.Column('primary_focus', sa.Text(), nullable=True),
        sa.Column('secondary_focus', sa.Text(), nullable=True),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('advancement_level IS NULL OR advancement_level BETWEEN 1 AND 9', name='ck_person_advancement_level'),
        sa.CheckConstraint('responsibility_tier IS NULL OR responsibility_tier BETWEEN 1 AND 6', name='ck_person_responsibility_tier'),
        sa.CheckConstraint('collective_growth_phase IS NULL OR collective_growth_phase BETWEEN 1 AND 6', name='ck_person_collective_growth_phase'),
    )

    op.create_table(
        'group',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('group_type', sa.Text(), server_default='team', nullable=False),
        _created_at(),
    )

    op.create_table(
        'person_group',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('person_id', sa.Text(), sa.ForeignKey('person.id'), nullable=False),
        sa.Column('group_id', sa.Text(), sa.ForeignKey('group.id'), nullable=False),
        sa.Column('role', sa.Text(), server_default='player', nullable=False),
        _created_at(),
        sa.UniqueConstraint('person_id', 'group_id', 'role', name='uq_person_group_role'),
    )
    op.create_index('ix_person_group_person_id', 'person_group', ['person_id'])
    op.create_index('ix_person_group_group_id', 'person_group', ['group_id'])

    op.create_table(
        'session',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('title', sa.Text(), nullable=True),
        sa.Column('objective', sa.Text(), nullable=True),
        sa.Column('team_id', sa.Text(), sa.ForeignKey('group.id'), nullable=True),
        sa.Column('pod_id', sa.Text(), nullable=True),
        sa.Column('coach_id', sa.Text(), nullable=True),
        sa.Column('status', sa.Text(), server_default='pending_approval', nullable=False),
        sa.Column('session_date', sa.Date(), nullable=True),
        sa.Column('duration_minutes', sa.Integer(), nullable=True),
        sa.Column('session_plan', _json(), nullable=True),
        sa.Column('overall_theme_tags', _json(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column('collective_growth_phase', sa.Integer(), nullable=True),
        sa.Column('responsibility_tiers', _json(), nullable=True),
        sa.Column('advancement_levels', _json(), nullable=True),
        sa.Column('planned_attendance', _json(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column('session_notes', sa.Text(), nullable=True),
        sa.Column('reflection_fields', _json(), server_default=sa.text("'{}'::jsonb"), nullable=False),
        sa.Column('created_by', sa.Text(), nullable=True),
        _created_at(),
        sa.Column('last_updated', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_session_team_id', 'session', ['team_id'])
    op.create_index('ix_session_coach_id', 'session', ['coach_id'])

    op.create_table(
        'mpbc_practice_session_blocks',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('session_id', sa.Text(), sa.ForeignKey('session.id'), nullable=False),
        sa.Column('block_id', sa.Text(), nullable=True),
        sa.Column('block_order', sa.Integer(), nullable=False),
        sa.Column('block_name', sa.Text(), nullable=True),
        sa.Column('duration', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_index('ix_mpbc_practice_session_blocks_session_id', 'mpbc_practice_session_blocks', ['session_id'])

    op.create_table(
        'pdp',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('person_id', sa.Text(), sa.ForeignKey('person.id'), nullable=False),
        sa.Column('person_name', sa.Text(), nullable=True),
        sa.Column('is_current', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('status', sa.Text(), server_default='pending_approval', nullable=False),
        sa.Column('pdp_text_coach', sa.Text(), nullable=True),
        sa.Column('pdp_text_player', sa.Text(), nullable=True),
        sa.Column('pdp_full_text', sa.Text(), nullable=True),
        sa.Column('primary_focus', sa.Text(), nullable=True),
        sa.Column('secondary_focus', sa.Text(), nullable=True),
        sa.Column('skills_summary', sa.Text(), nullable=True),
        sa.Column('constraints_summary', sa.Text(), nullable=True),
        sa.Column('skill_tags', _json(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column('constraint_tags', _json(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column('theme_tags', _json(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column('actionable_goals', _json(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column('coaching_recommendations', _json(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column('source_observation_ids', _json(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column('advancement_level', sa.Integer(), nullable=True),
        sa.Column('responsibility_tier', sa.Integer(), nullable=True),
        sa.Column('collective_growth_phase', sa.Integer(), nullable=True),
        sa.Column('target_advancement_level', sa.Integer(), nullable=True),
        sa.Column('target_responsibility_tier', sa.Integer(), nullable=True),
        sa.Column('previous_version_id', sa.Text(), sa.ForeignKey('pdp.id'), nullable=True),
        sa.Column('created_by', sa.Text(), nullable=True),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('archived_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_pdp_person_id', 'pdp', ['person_id'])
    op.create_index('ix_pdp_person_current', 'pdp', ['person_id', 'is_current'])

    op.create_table(
        'tag',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('tag_name', sa.Text(), nullable=True),
        sa.Column('tag_type', sa.Text(), nullable=False),
        sa.Column('category', sa.Text(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('synonyms', _json(), server_default=sa.text("'[]'::jsonb"), nullable=False),
        sa.Column('active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        _created_at(),
    )
    op.create_index('ix_tag_tag_type', 'tag', ['tag_type'])

    op.create_table(
        'tag_suggestions',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('suggested_tag', sa.Text(), nullable=False),
        sa.Column('proposed_type', sa.Text(), nullable=True),
        sa.Column('source_table', sa.Text(), nullable=True),
        sa.Column('reviewed', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        _created_at(),
    )

    op.create_table(
        'flagged_names',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('flagged_name', sa.Text(), nullable=False),
        sa.Column('observation_text', sa.Text(), nullable=True),
        sa.Column('attempted_match', sa.Text(), nullable=True),
        sa.Column('resolution_status', sa.Text(), server_default='unmatched', nullable=False),
        sa.Column('flagged_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    )

    op.create_table(
        'observation_intake',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('raw_note', sa.Text(), nullable=False),
        sa.Column('coach_id', sa.Text(), nullable=True),
        sa.Column('session_id', sa.Text(), nullable=True),
        sa.Column('player_id', sa.Text(), nullable=True),
        sa.Column('group_id', sa.Text(), nullable=True),
        sa.Column('processed', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        _created_at(),
    )
    op.create_index('ix_observation_intake_coach_id', 'observation_intake', ['coach_id'])

    op.create_table(
        'observation_logs',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('observation_id', sa.Text(), nullable=True),
        sa.Column('entry_type', sa.Text(), server_default='coach_observation', nullable=False),
        sa.Column('payload', _json(), server_default=sa.text("'{}'::jsonb"), nullable=False),
        sa.Column('person_id', sa.Text(), nullable=True),
        sa.Column('player_id', sa.Text(), nullable=True),
        sa.Column('session_id', sa.Text(), nullable=True),
        sa.Column('analysis', sa.Text(), nullable=True),
        sa.Column('recommendation', sa.Text(), nullable=True),
        sa.Column('advancement_level', sa.Integer(), nullable=True),
        sa.Column('responsibility_tier', sa.Integer(), nullable=True),
        sa.Column('collective_growth_phase', sa.Integer(), nullable=True),
        _created_at(),
    )
    op.create_index('ix_observation_logs_person_id', 'observation_logs', ['person_id'])
    op.create_index('ix_observation_logs_player_id', 'observation_logs', ['player_id'])
    op.create_index('ix_observation_logs_session_id', 'observation_logs', ['session_id'])
    op.create_index('ix_observation_logs_created_at', 'observation_logs', ['created_at'])

    op.create_table(
        'observation_tags',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('observation_id', sa.Text(), sa.ForeignKey('observation_logs.id'), nullable=False),
        sa.Column('tag_id', sa.Text(), nullable=False),
        sa.Column('tag_name', sa.Text(), nullable=True),
        sa.Column('entity_type', sa.Text(), nullable=False),
        sa.Column('relevance_score', sa.Integer(), nullable=True),
        sa.Column('reason', sa.Text(), nullable=True),
        _created_at(),
    )
    op.create_index('ix_observation_tags_observation_id', 'observation_tags', ['observation_id'])

    op.create_table(
        'attendance',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('session_id', sa.Text(), sa.ForeignKey('session.id'), nullable=False),
        sa.Column('person_id', sa.Text(), sa.ForeignKey('person.id'), nullable=False),
        sa.Column('present', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('status', sa.Text(), server_default='present', nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint('session_id', 'person_id', name='uq_attendance_session_person'),
    )
    op.create_index('ix_attendance_session_id', 'attendance', ['session_id'])
    op.create_index('ix_attendance_person_id', 'attendance', ['person_id'])

    op.create_table(
        'agent_events',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('event_type', sa.Text(), nullable=False),
        sa.Column('agent_id', sa.Text(), nullable=True),
        sa.Column('player_id', sa.Text(), nullable=True),
        sa.Column('team_id', sa.Text(), nullable=True),
        sa.Column('details', _json(), server_default=sa.text("'{}'::jsonb"), nullable=False),
        sa.Column('status', sa.Text(), server_default='completed', nullable=False),
        _created_at(),
    )
    op.create_index('ix_agent_events_event_type', 'agent_events', ['event_type'])
    op.create_index('ix_agent_events_created_at', 'agent_events', ['created_at'])


def downgrade() -> None:
    op.drop_table('agent_events')
    op.drop_table('attendance')
    op.drop_table('observation_tags')
    op.drop_table('observation_logs')
    op.drop_table('observation_intake')
    op.drop_table('flagged_names')
    op.drop_table('tag_suggestions')
    op.drop_table('tag')
    op.drop_table('pdp')
    op.drop_table('mpbc_practice_session_blocks')
    op.drop_table('session')
    op.drop_table('person_group')
    op.drop_table('group')
    op.drop_table('person')
