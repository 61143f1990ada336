# API endpoints
from . import auth, users, tasks, messages, realtime, health

__all__ = ["auth", "users", "tasks", "messages", "realtime", "health"]
