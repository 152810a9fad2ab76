"""create room, player and game_score tables

Revision ID: 5b7e2c1d9a40
Revises:
Create Date: 2026-02-16 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5b7e2c1d9a40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'room',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('code', sa.String(length=8), nullable=False),
        sa.Column('host_session_id', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='lobby'),
        sa.Column('max_players', sa.Integer(), nullable=False, server_default='4'),
        sa.Column('current_turn_player_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('current_round', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('game_state', sa.Text(), nullable=True),
        sa.Column('created_at', sa.Float(), nullable=False),
        sa.Column('started_at', sa.Float(), nullable=True),
        sa.Column('finished_at', sa.Float(), nullable=True),
        sa.Column('updated_at', sa.Float(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
    )
    op.create_index('ix_room_code', 'room', ['code'], unique=True)
    op.create_index('ix_room_status', 'room', ['status'])

    op.create_table(
        'player',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_id', sa.Integer(), sa.ForeignKey('room.id'), nullable=False),
        sa.Column('session_id', sa.String(length=64), nullable=False),
        sa.Column('display_name', sa.String(length=32), nullable=False),
        sa.Column('player_index', sa.Integer(), nullable=False),
        sa.Column('is_bot', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_connected', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('joined_at', sa.Float(), nullable=False),
        sa.UniqueConstraint('room_id', 'session_id', name='uq_player_room_session'),
        sa.UniqueConstraint('room_id', 'player_index', name='uq_player_room_index'),
    )
    op.create_index('ix_player_room_id', 'player', ['room_id'])
    op.create_index('ix_player_session_id', 'player', ['session_id'])

    op.create_table(
        'game_score',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('room_id', sa.Integer(), sa.ForeignKey('room.id'), nullable=False),
        sa.Column('player_id', sa.Integer(), sa.ForeignKey('player.id'), nullable=False),
        sa.Column('upper_total', sa.Integer(), nullable=False),
        sa.Column('upper_bonus', sa.Integer(), nullable=False),
        sa.Column('lower_total', sa.Integer(), nullable=False),
        sa.Column('grand_total', sa.Integer(), nullable=False),
        sa.Column('is_winner', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('scorecard_data', sa.Text(), nullable=False),
        sa.Column('created_at', sa.Float(), nullable=False),
    )
    op.create_index('ix_game_score_room_id', 'game_score', ['room_id'])


def downgrade():
    op.drop_index('ix_game_score_room_id', table_name='game_score')
    op.drop_table('game_score')
    op.drop_index('ix_player_session_id', table_name='player')
    op.drop_index('ix_player_room_id', table_name='player')
    op.drop_table('player')
    op.drop_index('ix_room_status', table_name='room')
    op.drop_index('ix_room_code', table_name='room')
    op.drop_table('room')
