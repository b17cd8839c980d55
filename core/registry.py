from typing import Any, Callable, Dict, TypeVar

T = TypeVar("T")


class Registry:
    """Name-to-component lookup, filled by decorators at import time."""

    def __init__(self, name: str):
        """
        Args:
            name: The name of the registry (e.g., "prompt", "engine"), used in errors.
        """
        self._name = name
        self._components: Dict[str, Any] = {}

    def register(self, name: str) -> Callable[[T], T]:
        """
        A decorator registering a class or function under `name`.

        Raises:
            ValueError: If the name is already registered.
        """
        def decorator(component: T) -> T:
            if name in self._components:
                raise ValueError(f"Component '{name}' already registered in '{self._name}' registry.")
            self._components[name] = component
            return component
        return decorator

    def get(self, name: str) -> Any:
        """
        Raises:
            KeyError: If the name is not registered.
        """
        if name not in self._components:
            raise KeyError(f"Component '{name}' not found in '{self._name}' registry.")
        return self._components[name]

    def create(self, name: str, *args: Any, **kwargs: Any) -> Any:
        """Calls the registered component (constructor or builder) with the given arguments."""
        return self.get(name)(*args, **kwargs)

    def __contains__(self, name: str) -> bool:
        return name in self._components

    def __iter__(self):
        return iter(self._components)

    def keys(self):
        return self._components.keys()


collector_registry = Registry("collector")
prompt_registry = Registry("prompt")
engine_registry = Registry("engine")
