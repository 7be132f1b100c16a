"""
Advisory checks of a team against a candidate task set.
"""

from datetime import datetime, date
from typing import List, Optional, Sequence

from fieldops.core.config import settings
from fieldops.models.task import Task
from fieldops.models.team import Team
from fieldops.schemas.route import ConstraintViolation

ERROR = "error"
WARNING = "warning"


class ConstraintValidator:
    """Reports violations; never raises for a breached limit."""

    def validate(
        self,
        team: Team,
        tasks: Sequence[Task],
        total_distance: float,
        total_time: int,
        max_time: Optional[int] = None,
        max_distance: Optional[float] = None,
        missing_task_ids: Sequence[int] = ()
    ) -> List[ConstraintViolation]:
        """
        Check capacity, skills, equipment, distance and time limits.
        
        Args:
            team: Team the tasks would be assigned to
            tasks: Candidate tasks
            total_distance: Route distance in km for the tasks in visiting order
            total_time: Route time in minutes (service plus travel)
            max_time: Override of the team's route time limit
            max_distance: Override of the team's route distance limit
            missing_task_ids: Requested ids that were not found
            
        Returns:
            List of violations, each tagged with type and severity
        """
        violations = []

        for task_id in missing_task_ids:
            violations.append(ConstraintViolation(
                type="task_not_found",
                severity=ERROR,
                message=f"Task {task_id} not found",
                task_id=task_id,
            ))

        capacity = team.max_daily_tasks or settings.DEFAULT_MAX_TASKS_PER_TEAM
        if len(tasks) > capacity:
            violations.append(ConstraintViolation(
                type="capacity_exceeded",
                severity=ERROR,
                message=f"Team capacity exceeded: {len(tasks)} tasks > {capacity} max",
            ))

        team_skills = set(team.skills or [])
        team_equipment = set(team.equipment or [])
        for task in tasks:
            missing_skills = [s for s in task.skills_required or [] if s not in team_skills]
            if missing_skills:
                violations.append(ConstraintViolation(
                    type="skill_mismatch",
                    severity=ERROR,
                    message=f"Task {task.name} requires skills: {', '.join(missing_skills)}",
                    task_id=task.id,
                ))
            missing_equipment = [e for e in task.equipment_required or [] if e not in team_equipment]
            if missing_equipment:
                violations.append(ConstraintViolation(
                    type="equipment_missing",
                    severity=WARNING,
                    message=f"Task {task.name} requires equipment: {', '.join(missing_equipment)}",
                    task_id=task.id,
                ))

        time_limit = max_time or team.max_route_time or settings.DEFAULT_MAX_ROUTE_TIME_MINUTES
        if total_time > time_limit:
            violations.append(ConstraintViolation(
                type="time_exceeded",
                severity=WARNING,
                message=f"Route time {total_time}min exceeds maximum {time_limit}min",
            ))

        distance_limit = max_distance or team.max_route_distance or settings.DEFAULT_MAX_ROUTE_DISTANCE_KM
        if total_distance > distance_limit:
            violations.append(ConstraintViolation(
                type="distance_exceeded",
                severity=WARNING,
                message=f"Route distance {total_distance:.1f}km exceeds maximum {distance_limit}km",
            ))

        span = self.working_span_minutes(team)
        if span is not None and total_time > span:
            violations.append(ConstraintViolation(
                type="working_hours_exceeded",
                severity=WARNING,
                message=f"Route time {total_time}min exceeds working hours span {span}min",
            ))

        return violations

    @staticmethod
    def working_span_minutes(team: Team) -> Optional[int]:
        if team.work_start_time is None or team.work_end_time is None:
            return None
        start = datetime.combine(date.min, team.work_start_time)
        end = datetime.combine(date.min, team.work_end_time)
        if end <= start:
            return None
        return int((end - start).total_seconds() // 60)

    @staticmethod
    def is_valid(violations: Sequence[ConstraintViolation]) -> bool:
        return not any(v.severity == ERROR for v in violations)
