"""Base classes for lifecycle-managed components"""

from .lifecycle_component import (
    AsyncLifecycleComponent,
    ComponentState,
    LifecycleComponent,
)

__all__ = ["AsyncLifecycleComponent", "ComponentState", "LifecycleComponent"]
