"""
Route optimization and progress tracking engine.

Modules:
- geo: Haversine distance, travel time and fuel cost estimation
- routing_client / graphhopper_client: Optional directions provider
- optimizer: Priority partitioning and nearest-neighbour ordering
- constraint_validator: Advisory team/task-set checks
- route_storage: Route and RouteProgress persistence
- progress_tracker: Stop-level execution state machine
- weather_client / weather_impact / weather_overlay: Weather risk annotation
"""
