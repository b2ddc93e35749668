# Client package - polling companion for the queue API
from app.client.poller import QueuePoller

__all__ = ["QueuePoller"]
