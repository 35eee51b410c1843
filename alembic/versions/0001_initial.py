"""initial schema

Revision ID: 0001_initial
Revises:
Create Date: 2026-10-17 00:00:00.000000

Books, quizzes, gamification (user_stats, badges), notifications and
book clubs. The badge (user_id, type, tier) unique constraint is what keeps
badge issuance idempotent.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade() -> None:
    op.create_table(
        'books',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('google_books_id', sa.String(100), nullable=True),
        sa.Column('title', sa.Text, nullable=False),
        sa.Column('author', sa.Text, nullable=False),
        sa.Column('cover_url', sa.Text, nullable=True),
        sa.Column('status', sa.String(20), nullable=False, comment='read, reading, want_to_read'),
        sa.Column('user_notes', sa.Text, nullable=True),
        sa.Column('rating', sa.Integer, nullable=True),
        sa.Column('date_read', sa.DateTime, nullable=True),
        sa.Column('is_favorite', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('genre', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_books_id', 'books', ['id'])
    op.create_index('ix_books_user_id', 'books', ['user_id'])
    op.create_index('ix_books_user_created', 'books', ['user_id', 'created_at'])

    op.create_table(
        'quizzes',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('book_id', sa.Integer, sa.ForeignKey('books.id', ondelete='CASCADE'), nullable=False),
        sa.Column('difficulty', sa.String(20), nullable=False),
        sa.Column('questions', JSONType, nullable=False),
        sa.Column('user_answers', JSONType, nullable=True),
        sa.Column('score', sa.Integer, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_quizzes_id', 'quizzes', ['id'])
    op.create_index('ix_quizzes_book_id', 'quizzes', ['book_id'])

    op.create_table(
        'user_stats',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('daily_streak', sa.Integer, nullable=False, server_default='0'),
        sa.Column('longest_streak', sa.Integer, nullable=False, server_default='0'),
        sa.Column('last_active_date', sa.Date, nullable=True),
        sa.Column('total_quizzes_completed', sa.Integer, nullable=False, server_default='0'),
        sa.Column('total_books_added', sa.Integer, nullable=False, server_default='0'),
        sa.Column('total_books_read', sa.Integer, nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint('longest_streak >= daily_streak', name='ck_user_stats_longest_streak'),
    )
    op.create_index('ix_user_stats_id', 'user_stats', ['id'])
    op.create_index('ix_user_stats_user_id', 'user_stats', ['user_id'], unique=True)

    op.create_table(
        'badges',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('type', sa.String(30), nullable=False, comment='quizzes, books_added, books_read, daily_streak'),
        sa.Column('tier', sa.String(20), nullable=False, comment='bronze, silver, gold, platinum, diamond'),
        sa.Column('milestone', sa.Integer, nullable=False),
        sa.Column('earned_at', sa.DateTime, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.UniqueConstraint('user_id', 'type', 'tier', name='uq_badges_user_type_tier'),
    )
    op.create_index('ix_badges_id', 'badges', ['id'])
    op.create_index('ix_badges_user_id', 'badges', ['user_id'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('type', sa.String(30), nullable=False),
        sa.Column('title', sa.Text, nullable=False),
        sa.Column('message', sa.Text, nullable=False),
        sa.Column('is_read', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('related_book_id', sa.Integer, nullable=True),
        sa.Column('related_club_id', sa.Integer, nullable=True),
        sa.Column('metadata', JSONType, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_notifications_id', 'notifications', ['id'])
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_user_read', 'notifications', ['user_id', 'is_read'])

    op.create_table(
        'book_clubs',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('owner_id', sa.String(255), nullable=False),
        sa.Column('invite_code', sa.String(20), nullable=False),
        sa.Column('current_book_id', sa.Integer, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_book_clubs_id', 'book_clubs', ['id'])
    op.create_index('ix_book_clubs_owner_id', 'book_clubs', ['owner_id'])
    op.create_index('ix_book_clubs_invite_code', 'book_clubs', ['invite_code'], unique=True)

    op.create_table(
        'book_club_members',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('club_id', sa.Integer, sa.ForeignKey('book_clubs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, comment='owner, member'),
        sa.Column('joined_at', sa.DateTime, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.UniqueConstraint('club_id', 'user_id', name='uq_book_club_members_club_user'),
    )
    op.create_index('ix_book_club_members_id', 'book_club_members', ['id'])
    op.create_index('ix_book_club_members_club_id', 'book_club_members', ['club_id'])
    op.create_index('ix_book_club_members_user_id', 'book_club_members', ['user_id'])

    op.create_table(
        'book_club_messages',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('club_id', sa.Integer, sa.ForeignKey('book_clubs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(255), nullable=False),
        sa.Column('content', sa.Text, nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_book_club_messages_id', 'book_club_messages', ['id'])
    op.create_index('ix_book_club_messages_club_id', 'book_club_messages', ['club_id'])


def downgrade() -> None:
    op.drop_table('book_club_messages')
    op.drop_table('book_club_members')
    op.drop_table('book_clubs')
    op.drop_table('notifications')
    op.drop_table('badges')
    op.drop_table('user_stats')
    op.drop_table('quizzes')
    op.drop_table('books')
