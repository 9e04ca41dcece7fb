"""create_originality_tables

Revision ID: 3f9a1c2d7b10
Revises:
Create Date: 2026-10-17 10:12:41.204117

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f9a1c2d7b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'originality_scans',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column('subject_id', sa.String(), nullable=False),
        sa.Column('owner_id', sa.String(), nullable=False),
        sa.Column('content_hash', sa.String(length=64), nullable=False, comment='SHA256 of the canonical scan content'),
        sa.Column('status', sa.String(), nullable=False, server_default='pending', comment='pending | processing | completed | failed'),
        sa.Column('overall_score', sa.Float(), nullable=False, server_default='0', comment='-1 marks a failed scan'),
        sa.Column('classification', sa.String(), nullable=False, server_default='safe'),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('scanned_content', sa.Text(), nullable=True, comment='Canonical text the match offsets index into'),
        sa.Column('words_scanned', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('match_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('scanned_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('completed_at', sa.TIMESTAMP(timezone=True), nullable=True),
    )
    op.create_index('ix_originality_scans_owner_hash', 'originality_scans', ['owner_id', 'content_hash'])
    op.create_index('ix_originality_scans_subject_owner', 'originality_scans', ['subject_id', 'owner_id'])

    op.create_table(
        'similarity_matches',
        sa.Column('id', postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column(
            'scan_id',
            postgresql.UUID(as_uuid=False),
            sa.ForeignKey('originality_scans.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('sentence_text', sa.Text(), nullable=False),
        sa.Column('position_start', sa.Integer(), nullable=False, comment='Offset into the canonical scan content'),
        sa.Column('position_end', sa.Integer(), nullable=False),
        sa.Column('matched_source', sa.Text(), nullable=False),
        sa.Column('source_url', sa.Text(), nullable=True),
        sa.Column('source_database', sa.String(), nullable=False, server_default='web'),
        sa.Column('similarity_score', sa.Float(), nullable=False),
        sa.Column('classification', sa.String(), nullable=False),
        sa.Column('confidence', sa.Float(), nullable=False),
        sa.Column('created_at', sa.TIMESTAMP(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    )
    op.create_index('ix_similarity_matches_scan_id', 'similarity_matches', ['scan_id'])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_similarity_matches_scan_id', table_name='similarity_matches')
    op.drop_table('similarity_matches')
    op.drop_index('ix_originality_scans_subject_owner', table_name='originality_scans')
    op.drop_index('ix_originality_scans_owner_hash', table_name='originality_scans')
    op.drop_table('originality_scans')
