from typing import Callable, Dict, List, NamedTuple
from datetime import datetime

__all__ = [
    'event_bus', 'TRANSACTION_SAVED', 'TRANSACTION_DELETED', 'GOAL_COMPLETED',
    'SPENDING_ALERT', 'Event', 'EventBus',
]


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


class EventBus:
    def __init__(self):
        self._subscribers: Dict[str, List[Callable[[Event, dict], dict]]] = {}

    def subscribe(self, name: str, handler: Callable[[Event, dict], dict]) -> None:
        if name not in self._subscribers:
            self._subscribers[name] = []
        self._subscribers[name].append(handler)

    def publish(self, name: str, payload: dict) -> List[dict]:
        if name not in self._subscribers:
            return []

        event = Event(
            name=name,
            ts=datetime.now().isoformat(),
            payload=payload
        )

        results = []
        for handler in self._subscribers[name]:
            result = handler(event, payload)
            results.append(result)
        return results

    def unsubscribe(self, name: str, handler: Callable[[Event, dict], dict]) -> None:
        if name in self._subscribers:
            if handler in self._subscribers[name]:
                self._subscribers[name].remove(handler)


TRANSACTION_SAVED = "TRANSACTION_SAVED"
TRANSACTION_DELETED = "TRANSACTION_DELETED"
GOAL_COMPLETED = "GOAL_COMPLETED"
SPENDING_ALERT = "SPENDING_ALERT"

event_bus = EventBus()


def spending_goal_handler(event: Event, payload: dict) -> dict:
    """Alert when a spending goal has gone past its target."""
    goal = payload.get("goal")
    if goal is None or goal.type != "spending" or goal.target <= 0:
        return {}
    if goal.current > goal.target:
        over = goal.current - goal.target
        return {
            "alert": f"Over budget for {goal.title}: {goal.current:.2f} / {goal.target:.2f}",
            "goal_id": goal.id,
            "over_budget": over,
        }
    return {"remaining": goal.target - goal.current}


def goal_completed_handler(event: Event, payload: dict) -> dict:
    goal = payload.get("goal")
    if goal is None:
        return {}
    return {"message": f"Goal completed: {goal.title}", "goal_id": goal.id}


def register_default_handlers(bus: EventBus = event_bus) -> None:
    bus.subscribe(SPENDING_ALERT, spending_goal_handler)
    bus.subscribe(GOAL_COMPLETED, goal_completed_handler)


register_default_handlers()
