from functools import lru_cache
from inspect import iscoroutinefunction
from typing import Any, Callable, Dict, Optional

from pydantic import BaseModel, Field


class Action(BaseModel):
    name: str
    title: str
    description: Optional[str] = None
    func: Optional[Callable] = Field(None, exclude=True)


_REGISTRY: Dict[str, Action] = {}


def register_action(title: str = None):
    """Decorator to register an async message action with metadata."""

    def decorator(func: Callable):
        if not iscoroutinefunction(func):
            raise ValueError(f"Action {func.__name__} must be an async function")

        _REGISTRY[func.__name__] = Action(
            name=func.__name__,
            title=title or func.__name__,
            description=func.__doc__,
            func=func,
        )
        return func

    return decorator


@lru_cache
def get_registered_actions() -> Dict[str, Action]:
    return _REGISTRY


def get_registered_action(name: str) -> Action:
    if name not in _REGISTRY:
        raise KeyError(f"Action {name} not found in registry")
    return _REGISTRY[name]


async def execute_action(action_name: str, message: Any) -> Any:
    """Execute a registered action with a received message."""
    action = get_registered_action(action_name)
    return await action.func(message)
