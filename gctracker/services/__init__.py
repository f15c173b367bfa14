"""Integrations with the session store, database, mail and status page."""
