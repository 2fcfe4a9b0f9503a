"""Long-running and scheduled processes: notification delivery and daily standup."""
