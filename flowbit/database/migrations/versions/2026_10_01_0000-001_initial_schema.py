"""Initial schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-01

Creates executions, execution_logs, execution_nodes and cron_jobs.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create relay tables"""
    op.create_table(
        'executions',
        sa.Column('id', sa.String(64), nullable=False, comment='Execution id (UUID unless supplied)'),
        sa.Column('flow_id', sa.String(255), nullable=False, comment='External workflow id'),
        sa.Column('flow_name', sa.String(255), nullable=False),
        sa.Column('engine', sa.String(50), nullable=True, comment='langflow or n8n'),
        sa.Column('status', sa.String(20), nullable=False, comment='RUNNING, COMPLETED, SUCCESS, ERROR'),
        sa.Column('trigger_type', sa.String(20), nullable=False, comment='manual, webhook, schedule, cron'),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False, comment='Creation time, never updated'),
        sa.Column('duration', sa.Float, nullable=True, comment='Seconds, set at the terminal transition'),
        sa.Column('inputs', sa.JSON, nullable=True),
        sa.Column('error', sa.Text, nullable=True),
        sa.Column('tags', sa.JSON, nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_executions_flow_id', 'executions', ['flow_id'])
    op.create_index('ix_executions_status', 'executions', ['status'])
    op.create_index('ix_executions_timestamp', 'executions', ['timestamp'])
    op.create_index('idx_executions_flow_id_timestamp', 'executions', ['flow_id', 'timestamp'])

    op.create_table(
        'execution_logs',
        sa.Column('id', sa.Integer, autoincrement=True, nullable=False),
        sa.Column('execution_id', sa.String(64), nullable=False),
        sa.Column('level', sa.String(20), nullable=False),
        sa.Column('message', sa.Text, nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['execution_id'], ['executions.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_execution_logs_execution_id', 'execution_logs', ['execution_id'])

    op.create_table(
        'execution_nodes',
        sa.Column('id', sa.Integer, autoincrement=True, nullable=False),
        sa.Column('execution_id', sa.String(64), nullable=False),
        sa.Column('node_id', sa.String(255), nullable=False, comment='node-<name>-<execution id prefix>'),
        sa.Column('node_name', sa.String(255), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('data', sa.JSON, nullable=True),
        sa.Column('error', sa.JSON, nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['execution_id'], ['executions.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('execution_id', 'node_name', name='uq_execution_nodes_execution_node'),
    )
    op.create_index('ix_execution_nodes_execution_id', 'execution_nodes', ['execution_id'])

    op.create_table(
        'cron_jobs',
        sa.Column('id', sa.String(255), nullable=False, comment='<engine>-<workflow_id>'),
        sa.Column('cron_expression', sa.String(255), nullable=False),
        sa.Column('workflow_id', sa.String(255), nullable=False),
        sa.Column('engine', sa.String(50), nullable=False),
        sa.Column('payload', sa.JSON, nullable=True),
        sa.Column('active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('last_run', sa.DateTime(timezone=True), nullable=True),
        sa.Column('next_run', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_cron_jobs_workflow_id', 'cron_jobs', ['workflow_id'])
    op.create_index('ix_cron_jobs_active', 'cron_jobs', ['active'])


def downgrade():
    """Drop relay tables"""
    op.drop_index('ix_cron_jobs_active', table_name='cron_jobs')
    op.drop_index('ix_cron_jobs_workflow_id', table_name='cron_jobs')
    op.drop_table('cron_jobs')
    op.drop_index('ix_execution_nodes_execution_id', table_name='execution_nodes')
    op.drop_table('execution_nodes')
    op.drop_index('ix_execution_logs_execution_id', table_name='execution_logs')
    op.drop_table('execution_logs')
    op.drop_index('idx_executions_flow_id_timestamp', table_name='executions')
    op.drop_index('ix_executions_timestamp', table_name='executions')
    op.drop_index('ix_executions_status', table_name='executions')
    op.drop_index('ix_executions_flow_id', table_name='executions')
    op.drop_table('executions')
