from vmscaler.actors.autoscaler import autoscaler_actor

__all__ = [
    "autoscaler_actor",
]
