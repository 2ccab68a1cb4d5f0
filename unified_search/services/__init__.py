from . import history, normalizer, orchestrator, ranking, search_service

__all__ = [
    "history",
    "normalizer",
    "orchestrator",
    "ranking",
    "search_service",
]
