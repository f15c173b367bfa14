"""Business processes that span more than one service."""
