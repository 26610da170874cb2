# organizer/metrics.py
from prometheus_client import Counter, Summary, start_http_server

EXPANSION_TIME = Summary(
    "organizer_recurrence_expansion_seconds",
    "Time spent expanding a recurrence rule into child events",
)

EVENTS_CREATED = Counter(
    "organizer_events_created_total",
    "Events written to the store, by kind",
    ["kind"],  # single | parent | child | duplicate
)

EVENT_MOVES = Counter(
    "organizer_event_moves_total",
    "Event date changes, by outcome",
    ["outcome"],  # moved | rejected
)

_server_started = False


def start_metrics_server(port: int) -> bool:
    """Expose /metrics once per process; port 0 disables it."""
    global _server_started
    if port <= 0 or _server_started:
        return False
    start_http_server(port)
    _server_started = True
    return True
