"""create_routing_engine_tables

Revision ID: 3f2a9c1d7e40
Revises: 
Create Date: 2026-10-17 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '3f2a9c1d7e40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON = sa.JSON().with_variant(postgresql.JSONB(), 'postgresql')

fuel_type = sa.Enum('gasoline', 'diesel', 'electric', 'hybrid', name='fueltype')
task_type = sa.Enum(
    'installation', 'maintenance', 'inspection', 'delivery',
    'pickup', 'consultation', 'repair', 'survey', name='tasktype'
)
task_priority = sa.Enum('low', 'medium', 'high', 'urgent', 'emergency', name='taskpriority')
task_status = sa.Enum(
    'pending', 'assigned', 'in_progress', 'on_hold', 'completed', 'cancelled', 'rescheduled',
    name='taskstatus'
)
route_status = sa.Enum('draft', 'optimized', 'assigned', 'in_progress', 'completed', 'cancelled', name='routestatus')
route_stop_status = sa.Enum('pending', 'arrived', 'in_service', 'completed', 'skipped', name='routestopstatus')
optimization_objective = sa.Enum('minimize_time', 'minimize_fuel', 'balanced', name='optimizationobjective')
progress_status = sa.Enum('pending', 'in_progress', 'completed', name='progressstatus')
progress_task_status = sa.Enum('pending', 'in_progress', 'completed', 'skipped', name='progresstaskstatus')


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def _soft_delete():
    return [
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
    ]


def upgrade() -> None:
    """Create business, team, task, route and route progress tables."""
    op.create_table(
        'business',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('timezone', sa.String(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        'team',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('business.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('external_identifier', sa.String(), nullable=True),
        sa.Column('alternate_ids', JSON, nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_available_for_routing', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('skills', JSON, nullable=True),
        sa.Column('equipment', JSON, nullable=True),
        sa.Column('max_daily_tasks', sa.Integer(), nullable=True),
        sa.Column('max_route_time', sa.Integer(), nullable=True),
        sa.Column('max_route_distance', sa.Float(), nullable=True),
        sa.Column('work_start_time', sa.Time(), nullable=True),
        sa.Column('work_end_time', sa.Time(), nullable=True),
        sa.Column('current_latitude', sa.Float(), nullable=True),
        sa.Column('current_longitude', sa.Float(), nullable=True),
        sa.Column('fuel_type', fuel_type, nullable=True),
        sa.Column('fuel_consumption', sa.Float(), nullable=True),
        sa.Column('fuel_price_per_unit', sa.Float(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_team_business_id', 'team', ['business_id'])
    op.create_index('ix_team_external_identifier', 'team', ['external_identifier'])

    op.create_table(
        'route',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('route_code', sa.String(), nullable=False, unique=True),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('business.id', ondelete='CASCADE'), nullable=False),
        sa.Column('team_id', sa.Integer(), sa.ForeignKey('team.id', ondelete='CASCADE'), nullable=False),
        sa.Column('route_date', sa.Date(), nullable=False),
        sa.Column('status', route_status, nullable=False),
        sa.Column('optimization_score', sa.Integer(), nullable=True),
        sa.Column('optimization_objective', optimization_objective, nullable=True),
        sa.Column('estimated_total_time', sa.Integer(), nullable=True),
        sa.Column('estimated_distance', sa.Float(), nullable=True),
        sa.Column('estimated_fuel_cost', sa.Float(), nullable=True),
        sa.Column('actual_total_time', sa.Integer(), nullable=True),
        sa.Column('actual_distance', sa.Float(), nullable=True),
        sa.Column('actual_fuel_cost', sa.Float(), nullable=True),
        sa.Column('optimization_metadata', JSON, nullable=True),
        sa.Column('weather_considerations', JSON, nullable=True),
        sa.Column('assigned_at', sa.DateTime(), nullable=True),
        sa.Column('assigned_by', sa.String(), nullable=True),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        *_soft_delete(),
        *_timestamps(),
    )
    op.create_index('ix_route_business_date', 'route', ['business_id', 'route_date'])
    op.create_index('ix_route_team_id', 'route', ['team_id'])

    op.create_table(
        'task',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('business.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('task_type', task_type, nullable=False),
        sa.Column('priority', task_priority, nullable=False),
        sa.Column('status', task_status, nullable=False),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.Column('address', sa.String(), nullable=True),
        sa.Column('scheduled_date', sa.Date(), nullable=False),
        sa.Column('time_window_start', sa.String(), nullable=True),
        sa.Column('time_window_end', sa.String(), nullable=True),
        sa.Column('time_window_flexible', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('estimated_duration', sa.Integer(), nullable=False),
        sa.Column('skills_required', JSON, nullable=True),
        sa.Column('equipment_required', JSON, nullable=True),
        sa.Column('assigned_team_id', sa.Integer(), sa.ForeignKey('team.id', ondelete='SET NULL'), nullable=True),
        sa.Column('assigned_route_id', sa.Integer(), sa.ForeignKey('route.id', ondelete='SET NULL'), nullable=True),
        sa.Column('assigned_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('actual_performance', JSON, nullable=True),
        sa.Column('customer_name', sa.String(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_soft_delete(),
        *_timestamps(),
    )
    op.create_index('ix_task_business_scheduled', 'task', ['business_id', 'scheduled_date'])
    op.create_index('ix_task_status', 'task', ['status'])
    op.create_index('ix_task_assigned_team_id', 'task', ['assigned_team_id'])
    op.create_index('ix_task_assigned_route_id', 'task', ['assigned_route_id'])

    op.create_table(
        'route_stop',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('route_id', sa.Integer(), sa.ForeignKey('route.id', ondelete='CASCADE'), nullable=False),
        sa.Column('task_id', sa.Integer(), sa.ForeignKey('task.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sequence_number', sa.Integer(), nullable=False),
        sa.Column('status', route_stop_status, nullable=False),
        sa.Column('estimated_arrival_time', sa.DateTime(), nullable=True),
        sa.Column('estimated_departure_time', sa.DateTime(), nullable=True),
        sa.Column('actual_arrival_time', sa.DateTime(), nullable=True),
        sa.Column('actual_departure_time', sa.DateTime(), nullable=True),
        sa.Column('distance_from_previous', sa.Float(), nullable=True),
        sa.Column('travel_time_from_previous', sa.Integer(), nullable=True),
        sa.Column('service_time', sa.Integer(), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('address', sa.String(), nullable=True),
        sa.Column('weather_delay_minutes', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_route_stop_route_id', 'route_stop', ['route_id'])

    op.create_table(
        'route_progress',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('business_id', sa.Integer(), sa.ForeignKey('business.id', ondelete='CASCADE'), nullable=False),
        sa.Column('team_id', sa.Integer(), sa.ForeignKey('team.id', ondelete='CASCADE'), nullable=False),
        sa.Column('team_name', sa.String(), nullable=True),
        sa.Column('route_id', sa.Integer(), sa.ForeignKey('route.id', ondelete='CASCADE'), nullable=True),
        sa.Column('route_date', sa.Date(), nullable=False),
        sa.Column('route_status', progress_status, nullable=False),
        sa.Column('current_task_index', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('completed_tasks_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('route_start_time', sa.DateTime(), nullable=True),
        sa.Column('route_end_time', sa.DateTime(), nullable=True),
        sa.Column('estimated_completion_time', sa.DateTime(), nullable=True),
        sa.Column('total_estimated_duration', sa.Integer(), nullable=True),
        sa.Column('total_actual_duration', sa.Integer(), nullable=True),
        sa.Column('total_distance_km', sa.Float(), nullable=True),
        sa.Column('total_delay_minutes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('progress_updates', JSON, nullable=False),
        sa.Column('performance', JSON, nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        *_soft_delete(),
        *_timestamps(),
    )
    op.create_index('ix_route_progress_team_date', 'route_progress', ['team_id', 'route_date'])
    op.create_index('ix_route_progress_route_id', 'route_progress', ['route_id'])

    op.create_table(
        'route_progress_task',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column(
            'progress_id', sa.Integer(),
            sa.ForeignKey('route_progress.id', ondelete='CASCADE'), nullable=False
        ),
        sa.Column('task_id', sa.Integer(), sa.ForeignKey('task.id', ondelete='CASCADE'), nullable=False),
        sa.Column('scheduled_order', sa.Integer(), nullable=False),
        sa.Column('status', progress_task_status, nullable=False),
        sa.Column('estimated_start_time', sa.DateTime(), nullable=True),
        sa.Column('estimated_end_time', sa.DateTime(), nullable=True),
        sa.Column('actual_start_time', sa.DateTime(), nullable=True),
        sa.Column('actual_end_time', sa.DateTime(), nullable=True),
        sa.Column('estimated_duration', sa.Integer(), nullable=True),
        sa.Column('actual_duration', sa.Integer(), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('address', sa.String(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('delay_reasons', JSON, nullable=True),
    )
    op.create_index('ix_route_progress_task_progress_id', 'route_progress_task', ['progress_id'])


def downgrade() -> None:
    """Drop routing engine tables."""
    op.drop_table('route_progress_task')
    op.drop_table('route_progress')
    op.drop_table('route_stop')
    op.drop_table('task')
    op.drop_table('route')
    op.drop_table('team')
    op.drop_table('business')
    bind = op.get_bind()
    for enum_type in (
        progress_task_status, progress_status, optimization_objective, route_stop_status,
        route_status, task_status, task_priority, task_type, fuel_type,
    ):
        enum_type.drop(bind, checkfirst=True)
