"""initial login protection schema

Revision ID: 001
Revises: 
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql
from sqlalchemy import text

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def _table_exists(conn, table_name: str) -> bool:
    return conn.execute(
        text("SELECT EXISTS (SELECT 1 FROM information_schema.tables WHERE table_name = :name)"),
        {"name": table_name}
    ).scalar()


def upgrade() -> None:
    conn = op.get_bind()

    severity_exists = conn.execute(
        text("SELECT EXISTS (SELECT 1 FROM pg_type WHERE typname = 'severity')")
    ).scalar()

    if not severity_exists:
        op.execute(text("CREATE TYPE severity AS ENUM ('LOW', 'MEDIUM', 'HIGH', 'CRITICAL')"))

    severity_enum = postgresql.ENUM('LOW', 'MEDIUM', 'HIGH', 'CRITICAL', name='severity', create_type=False)

    if not _table_exists(conn, 'login_attempts'):
        op.create_table(
            'login_attempts',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('identifier', sa.String(255), nullable=False),
            sa.Column('identifier_type', sa.String(50), nullable=False),
            sa.Column('success', sa.Boolean(), nullable=False, server_default='false'),
            sa.Column('ip_address', sa.String(64), nullable=True),
            sa.Column('user_agent', sa.Text(), nullable=True),
            sa.Column('attempted_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
            sa.Column('cleared', sa.Boolean(), nullable=False, server_default='false'),
            sa.Column('metadata', postgresql.JSON(astext_type=sa.Text()), nullable=True),
            sa.CheckConstraint(
                "identifier_type IN ('email', 'ip', 'username')",
                name='ck_login_attempts_identifier_type'
            ),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_login_attempts_id'), 'login_attempts', ['id'], unique=False)
        op.create_index(op.f('ix_login_attempts_identifier'), 'login_attempts', ['identifier'], unique=False)
        op.create_index(op.f('ix_login_attempts_identifier_type'), 'login_attempts', ['identifier_type'], unique=False)
        op.create_index(op.f('ix_login_attempts_success'), 'login_attempts', ['success'], unique=False)
        op.create_index(op.f('ix_login_attempts_ip_address'), 'login_attempts', ['ip_address'], unique=False)
        op.create_index(op.f('ix_login_attempts_attempted_at'), 'login_attempts', ['attempted_at'], unique=False)
        op.create_index(op.f('ix_login_attempts_cleared'), 'login_attempts', ['cleared'], unique=False)

    if not _table_exists(conn, 'account_locks'):
        op.create_table(
            'account_locks',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('identifier', sa.String(255), nullable=False),
            sa.Column('identifier_type', sa.String(50), nullable=False),
            sa.Column('reason', sa.Text(), nullable=False),
            sa.Column('locked_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
            sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('unlocked_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
            sa.Column('locked_by', sa.String(255), nullable=True),
            sa.Column('active_key', sa.String(320), nullable=True),
            sa.CheckConstraint(
                "identifier_type IN ('email', 'user_id', 'username')",
                name='ck_account_locks_identifier_type'
            ),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('active_key')
        )
        op.create_index(op.f('ix_account_locks_id'), 'account_locks', ['id'], unique=False)
        op.create_index(op.f('ix_account_locks_identifier'), 'account_locks', ['identifier'], unique=False)
        op.create_index(op.f('ix_account_locks_expires_at'), 'account_locks', ['expires_at'], unique=False)
        op.create_index(op.f('ix_account_locks_is_active'), 'account_locks', ['is_active'], unique=False)

    if not _table_exists(conn, 'security_blocks'):
        op.create_table(
            'security_blocks',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('identifier', sa.String(255), nullable=False),
            sa.Column('identifier_type', sa.String(50), nullable=False),
            sa.Column('reason', sa.Text(), nullable=False),
            sa.Column('severity', severity_enum, nullable=False, server_default='MEDIUM'),
            sa.Column('blocked_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
            sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
            sa.Column('blocked_by', sa.String(255), nullable=True),
            sa.Column('metadata', postgresql.JSON(astext_type=sa.Text()), nullable=True),
            sa.CheckConstraint(
                "identifier_type IN ('email', 'fingerprint', 'ip', 'user_id')",
                name='ck_security_blocks_identifier_type'
            ),
            sa.PrimaryKeyConstraint('id')
        )
        op.create_index(op.f('ix_security_blocks_id'), 'security_blocks', ['id'], unique=False)
        op.create_index(op.f('ix_security_blocks_identifier'), 'security_blocks', ['identifier'], unique=False)
        op.create_index(op.f('ix_security_blocks_identifier_type'), 'security_blocks', ['identifier_type'], unique=False)
        op.create_index(op.f('ix_security_blocks_expires_at'), 'security_blocks', ['expires_at'], unique=False)
        op.create_index(op.f('ix_security_blocks_is_active'), 'security_blocks', ['is_active'], unique=False)

    if not _table_exists(conn, 'security_alerts'):
        op.create_table(
            'security_alerts',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('identifier', sa.String(255), nullable=False),
            sa.Column('alert_type', sa.String(100), nullable=False),
            sa.Column('reason', sa.Text(), nullable=False),
            sa.Column('severity', severity_enum, nullable=False, server_default='MEDIUM'),
            sa.Column('metadata', postgresql.JSON(astext_type=sa.Text()), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
            sa.Column('reviewed', sa.Boolean(), nullable=False, server_default='false'),
            sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('reviewed_by', sa.String(255), nullable=True),
            sa.Column('action_taken', sa.Text(), nullable=True),
            sa.Column('dedupe_key', sa.String(700), nullable=True),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('dedupe_key')
        )
        op.create_index(op.f('ix_security_alerts_id'), 'security_alerts', ['id'], unique=False)
        op.create_index(op.f('ix_security_alerts_identifier'), 'security_alerts', ['identifier'], unique=False)
        op.create_index(op.f('ix_security_alerts_alert_type'), 'security_alerts', ['alert_type'], unique=False)
        op.create_index(op.f('ix_security_alerts_created_at'), 'security_alerts', ['created_at'], unique=False)
        op.create_index(op.f('ix_security_alerts_reviewed'), 'security_alerts', ['reviewed'], unique=False)

    if not _table_exists(conn, 'rate_limit_overrides'):
        op.create_table(
            'rate_limit_overrides',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('identifier', sa.String(255), nullable=False),
            sa.Column('identifier_type', sa.String(50), nullable=False),
            sa.Column('endpoint_pattern', sa.String(255), nullable=False, server_default='*'),
            sa.Column('max_requests', sa.Integer(), nullable=False),
            sa.Column('window_minutes', sa.Integer(), nullable=False),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
            sa.Column('reason', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
            sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('created_by', sa.String(255), nullable=True),
            sa.CheckConstraint(
                "identifier_type IN ('api_key', 'ip', 'user_id')",
                name='ck_rate_limit_overrides_identifier_type'
            ),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint(
                'identifier', 'identifier_type', 'endpoint_pattern',
                name='uq_rate_limit_overrides_target'
            )
        )
        op.create_index(op.f('ix_rate_limit_overrides_id'), 'rate_limit_overrides', ['id'], unique=False)
        op.create_index(op.f('ix_rate_limit_overrides_identifier'), 'rate_limit_overrides', ['identifier'], unique=False)
        op.create_index(op.f('ix_rate_limit_overrides_is_active'), 'rate_limit_overrides', ['is_active'], unique=False)

    if not _table_exists(conn, 'captcha_challenges'):
        op.create_table(
            'captcha_challenges',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('identifier', sa.String(255), nullable=False),
            sa.Column('identifier_type', sa.String(50), nullable=False),
            sa.Column('challenge_token', sa.String(255), nullable=False),
            sa.Column('challenge_type', sa.String(50), nullable=False, server_default='recaptcha'),
            sa.Column('issued_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
            sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
            sa.Column('verified', sa.Boolean(), nullable=False, server_default='false'),
            sa.Column('verified_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('pending_key', sa.String(400), nullable=True),
            sa.CheckConstraint(
                "identifier_type IN ('email', 'ip', 'session')",
                name='ck_captcha_challenges_identifier_type'
            ),
            sa.PrimaryKeyConstraint('id'),
            sa.UniqueConstraint('pending_key')
        )
        op.create_index(op.f('ix_captcha_challenges_id'), 'captcha_challenges', ['id'], unique=False)
        op.create_index(op.f('ix_captcha_challenges_identifier'), 'captcha_challenges', ['identifier'], unique=False)
        op.create_index(op.f('ix_captcha_challenges_challenge_token'), 'captcha_challenges', ['challenge_token'], unique=True)
        op.create_index(op.f('ix_captcha_challenges_expires_at'), 'captcha_challenges', ['expires_at'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_captcha_challenges_expires_at'), table_name='captcha_challenges')
    op.drop_index(op.f('ix_captcha_challenges_challenge_token'), table_name='captcha_challenges')
    op.drop_index(op.f('ix_captcha_challenges_identifier'), table_name='captcha_challenges')
    op.drop_index(op.f('ix_captcha_challenges_id'), table_name='captcha_challenges')
    op.drop_table('captcha_challenges')
    op.drop_index(op.f('ix_rate_limit_overrides_is_active'), table_name='rate_limit_overrides')
    op.drop_index(op.f('ix_rate_limit_overrides_identifier'), table_name='rate_limit_overrides')
    op.drop_index(op.f('ix_rate_limit_overrides_id'), table_name='rate_limit_overrides')
    op.drop_table('rate_limit_overrides')
    op.drop_index(op.f('ix_security_alerts_reviewed'), table_name='security_alerts')
    op.drop_index(op.f('ix_security_alerts_created_at'), table_name='security_alerts')
    op.drop_index(op.f('ix_security_alerts_alert_type'), table_name='security_alerts')
    op.drop_index(op.f('ix_security_alerts_identifier'), table_name='security_alerts')
    op.drop_index(op.f('ix_security_alerts_id'), table_name='security_alerts')
    op.drop_table('security_alerts')
    op.drop_index(op.f('ix_security_blocks_is_active'), table_name='security_blocks')
    op.drop_index(op.f('ix_security_blocks_expires_at'), table_name='security_blocks')
    op.drop_index(op.f('ix_security_blocks_identifier_type'), table_name='security_blocks')
    op.drop_index(op.f('ix_security_blocks_identifier'), table_name='security_blocks')
    op.drop_index(op.f('ix_security_blocks_id'), table_name='security_blocks')
    op.drop_table('security_blocks')
    op.drop_index(op.f('ix_account_locks_is_active'), table_name='account_locks')
    op.drop_index(op.f('ix_account_locks_expires_at'), table_name='account_locks')
    op.drop_index(op.f('ix_account_locks_identifier'), table_name='account_locks')
    op.drop_index(op.f('ix_account_locks_id'), table_name='account_locks')
    op.drop_table('account_locks')
    op.drop_index(op.f('ix_login_attempts_cleared'), table_name='login_attempts')
    op.drop_index(op.f('ix_login_attempts_attempted_at'), table_name='login_attempts')
    op.drop_index(op.f('ix_login_attempts_ip_address'), table_name='login_attempts')
    op.drop_index(op.f('ix_login_attempts_success'), table_name='login_attempts')
    op.drop_index(op.f('ix_login_attempts_identifier_type'), table_name='login_attempts')
    op.drop_index(op.f('ix_login_attempts_identifier'), table_name='login_attempts')
    op.drop_index(op.f('ix_login_attempts_id'), table_name='login_attempts')
    op.drop_table('login_attempts')
    op.execute(text("DROP TYPE IF EXISTS severity"))
