"""create user, room, game and move tables

Revision ID: 4b7e1d9c2a10
Revises:
Create Date: 2026-10-19 00:00:00
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4b7e1d9c2a10'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'user',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('password_hash', sa.String(length=128), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_user_username', 'user', ['username'], unique=True)

    op.create_table(
        'room',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('code', sa.String(length=4), nullable=False),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('empty_at', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_room_code', 'room', ['code'], unique=True)
    op.create_index('ix_room_empty_at', 'room', ['empty_at'])

    op.create_table(
        'game',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('room_id', sa.String(length=36), sa.ForeignKey('room.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('player1_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('player2_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('player1_code', sa.String(length=4), nullable=True),
        sa.Column('player2_code', sa.String(length=4), nullable=True),
        sa.Column('current_round', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('winner_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint('player1_id != player2_id', name='ck_game_distinct_players'),
    )

    op.create_table(
        'move',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('game_id', sa.String(length=36), sa.ForeignKey('game.id', ondelete='CASCADE'), nullable=False),
        sa.Column('player_id', sa.Integer(), sa.ForeignKey('user.id'), nullable=False),
        sa.Column('round', sa.Integer(), nullable=False),
        sa.Column('guess', sa.String(length=4), nullable=False),
        sa.Column('bulls', sa.Integer(), nullable=False),
        sa.Column('cows', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('game_id', 'player_id', 'round', name='uq_move_game_player_round'),
        sa.CheckConstraint('round >= 1', name='ck_move_round_positive'),
        sa.CheckConstraint('bulls >= 0 AND cows >= 0 AND bulls + cows <= 4', name='ck_move_score_range'),
    )
    op.create_index('ix_move_game_id', 'move', ['game_id'])


def downgrade():
    op.drop_index('ix_move_game_id', table_name='move')
    op.drop_table('move')
    op.drop_table('game')
    op.drop_index('ix_room_empty_at', table_name='room')
    op.drop_index('ix_room_code', table_name='room')
    op.drop_table('room')
    op.drop_index('ix_user_username', table_name='user')
    op.drop_table('user')
