"""initial_schema

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-18

Creates:
- users and sessions for cookie authentication
- study and video_clip (clips are uploaded elsewhere)
- protocol with its scoring template (protocol_section, protocol_item)
- the decision tree: protocol_window > finding > possible_diagnosis >
  subdiagnosis > sub_subdiagnosis > third_order_diagnosis
- clip_protocol_selection, unique per (clip, user)
- evaluation_attempt / evaluation_response ledger, unique per (attempt, item)
- evaluation_form study rollup
- image_quality and final_diagnosis reference lists

Seed the catalogue afterwards with:
    docker-compose exec web python -m echoscore.cli seed
"""
from alembic import op
import sqlalchemy as sa

revision = '1a2b3c4d5e6f'
down_revision = None
branch_labels = None
depends_on = None


def _node_table(name, parent_column, parent_table, constraint):
    op.create_table(
        name,
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column(parent_column, sa.Integer(), nullable=False),
        sa.Column('key', sa.String(100), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.ForeignKeyConstraint([parent_column], [f'{parent_table}.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(parent_column, 'key', name=constraint),
    )
    op.create_index(op.f(f'ix_{name}_{parent_column}'), name, [parent_column], unique=False)


def upgrade() -> None:
    # Users and sessions
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('first_name', sa.String(100), nullable=False),
        sa.Column('last_name', sa.String(100), nullable=False),
        sa.Column('role', sa.String(15), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("role IN ('profesor', 'estudiante', 'admin')", name='ck_users_role'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )

    op.create_table(
        'sessions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token', sa.String(64), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_sessions_token'), 'sessions', ['token'], unique=True)
    op.create_index(op.f('ix_sessions_user_id'), 'sessions', ['user_id'], unique=False)

    # Studies and clips
    op.create_table(
        'study',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('student_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('protocol', sa.Text(), nullable=True),
        sa.Column('status', sa.String(50), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['student_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_study_student_id', 'study', ['student_id'], unique=False)

    op.create_table(
        'video_clip',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('study_id', sa.Integer(), nullable=False),
        sa.Column('object_key', sa.String(512), nullable=False),
        sa.Column('original_filename', sa.String(255), nullable=True),
        sa.Column('duration_seconds', sa.Integer(), nullable=True),
        sa.Column('order_index', sa.Integer(), nullable=False),
        sa.Column('protocol', sa.String(100), nullable=True),
        sa.Column('upload_date', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['study_id'], ['study.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_video_clip_study_id', 'video_clip', ['study_id'], unique=False)

    # Protocols and scoring template
    op.create_table(
        'protocol',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('key', sa.String(100), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('key'),
    )

    op.create_table(
        'protocol_section',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('protocol_id', sa.Integer(), nullable=False),
        sa.Column('key', sa.String(100), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('sort_order', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['protocol_id'], ['protocol.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('protocol_id', 'key', name='uq_protocol_section_key'),
    )

    op.create_table(
        'protocol_item',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('section_id', sa.Integer(), nullable=False),
        sa.Column('key', sa.String(100), nullable=False),
        sa.Column('label', sa.String(255), nullable=False),
        sa.Column('score_scale', sa.String(50), nullable=False),
        sa.Column('max_score', sa.Float(), nullable=False),
        sa.CheckConstraint('max_score > 0', name='ck_protocol_item_max_score'),
        sa.ForeignKeyConstraint(['section_id'], ['protocol_section.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('section_id', 'key', name='uq_protocol_item_key'),
    )

    # Decision tree
    _node_table('protocol_window', 'protocol_id', 'protocol', 'uq_protocol_window_key')
    _node_table('finding', 'window_id', 'protocol_window', 'uq_finding_key')
    _node_table('possible_diagnosis', 'finding_id', 'finding', 'uq_possible_diagnosis_key')
    _node_table(
        'subdiagnosis', 'possible_diagnosis_id', 'possible_diagnosis', 'uq_subdiagnosis_key'
    )
    _node_table(
        'sub_subdiagnosis', 'subdiagnosis_id', 'subdiagnosis', 'uq_sub_subdiagnosis_key'
    )
    _node_table(
        'third_order_diagnosis',
        'sub_subdiagnosis_id',
        'sub_subdiagnosis',
        'uq_third_order_diagnosis_key',
    )

    # Per-user clip selections
    op.create_table(
        'clip_protocol_selection',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('clip_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('protocol_id', sa.Integer(), nullable=False),
        sa.Column('window_id', sa.Integer(), nullable=False),
        sa.Column('finding_id', sa.Integer(), nullable=False),
        sa.Column('possible_diagnosis_id', sa.Integer(), nullable=False),
        sa.Column('subdiagnosis_id', sa.Integer(), nullable=True),
        sa.Column('sub_subdiagnosis_id', sa.Integer(), nullable=True),
        sa.Column('third_order_diagnosis_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['clip_id'], ['video_clip.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['protocol_id'], ['protocol.id']),
        sa.ForeignKeyConstraint(['window_id'], ['protocol_window.id']),
        sa.ForeignKeyConstraint(['finding_id'], ['finding.id']),
        sa.ForeignKeyConstraint(['possible_diagnosis_id'], ['possible_diagnosis.id']),
        sa.ForeignKeyConstraint(['subdiagnosis_id'], ['subdiagnosis.id']),
        sa.ForeignKeyConstraint(['sub_subdiagnosis_id'], ['sub_subdiagnosis.id']),
        sa.ForeignKeyConstraint(['third_order_diagnosis_id'], ['third_order_diagnosis.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('clip_id', 'user_id', name='uq_clip_protocol_selection_clip_user'),
    )

    # Attempt / response ledger
    op.create_table(
        'evaluation_attempt',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('clip_id', sa.Integer(), nullable=False),
        sa.Column('teacher_id', sa.Integer(), nullable=False),
        sa.Column('protocol_id', sa.Integer(), nullable=True),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column(
            'submitted_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.ForeignKeyConstraint(['clip_id'], ['video_clip.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['teacher_id'], ['users.id']),
        sa.ForeignKeyConstraint(['protocol_id'], ['protocol.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_evaluation_attempt_clip_id', 'evaluation_attempt', ['clip_id'], unique=False)
    op.create_index(
        'idx_evaluation_attempt_teacher_id', 'evaluation_attempt', ['teacher_id'], unique=False
    )

    op.create_table(
        'evaluation_response',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('attempt_id', sa.Integer(), nullable=False),
        sa.Column('protocol_item_id', sa.Integer(), nullable=False),
        sa.Column('score', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['attempt_id'], ['evaluation_attempt.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['protocol_item_id'], ['protocol_item.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'attempt_id', 'protocol_item_id', name='uq_evaluation_response_attempt_item'
        ),
    )

    # Study-level rollup
    op.create_table(
        'evaluation_form',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('study_id', sa.Integer(), nullable=False),
        sa.Column('teacher_id', sa.Integer(), nullable=False),
        sa.Column(
            'submitted_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False
        ),
        sa.Column('score', sa.Float(), nullable=True),
        sa.Column('feedback_summary', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['study_id'], ['study.id']),
        sa.ForeignKeyConstraint(['teacher_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'idx_evaluation_form_study_submitted',
        'evaluation_form',
        ['study_id', 'submitted_at'],
        unique=False,
    )
    op.create_index('idx_evaluation_form_teacher_id', 'evaluation_form', ['teacher_id'], unique=False)

    # Reference lists
    op.create_table(
        'image_quality',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )
    op.create_table(
        'final_diagnosis',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
    )


def downgrade() -> None:
    op.drop_table('final_diagnosis')
    op.drop_table('image_quality')

    op.drop_index('idx_evaluation_form_teacher_id', table_name='evaluation_form')
    op.drop_index('idx_evaluation_form_study_submitted', table_name='evaluation_form')
    op.drop_table('evaluation_form')

    op.drop_table('evaluation_response')
    op.drop_index('idx_evaluation_attempt_teacher_id', table_name='evaluation_attempt')
    op.drop_index('idx_evaluation_attempt_clip_id', table_name='evaluation_attempt')
    op.drop_table('evaluation_attempt')

    op.drop_table('clip_protocol_selection')

    for name, parent_column in [
        ('third_order_diagnosis', 'sub_subdiagnosis_id'),
        ('sub_subdiagnosis', 'subdiagnosis_id'),
        ('subdiagnosis', 'possible_diagnosis_id'),
        ('possible_diagnosis', 'finding_id'),
        ('finding', 'window_id'),
        ('protocol_window', 'protocol_id'),
    ]:
        op.drop_index(op.f(f'ix_{name}_{parent_column}'), table_name=name)
        op.drop_table(name)

    op.drop_table('protocol_item')
    op.drop_table('protocol_section')
    op.drop_table('protocol')

    op.drop_index('idx_video_clip_study_id', table_name='video_clip')
    op.drop_table('video_clip')
    op.drop_index('idx_study_student_id', table_name='study')
    op.drop_table('study')

    op.drop_index(op.f('ix_sessions_user_id'), table_name='sessions')
    op.drop_index(op.f('ix_sessions_token'), table_name='sessions')
    op.drop_table('sessions')
    op.drop_table('users')
