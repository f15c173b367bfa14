"""
GC Tracker.

GC Tracker is a Flask application that lets a user keep an eye on the status
of their immigration cases. A user signs up, adds one or more USCIS receipt
numbers, and the service periodically checks the public case status page for
each of them. When the status of a case changes, every user tracking that case
receives an e-mail.

Context
-------
Users create and manage their accounts via a browser-facing interface. They
can sign in and out, change their password, and, when they forget it, request
a reset link by e-mail. A reset link carries a short-lived token that allows
the password to be changed without signing in.

When a user signs in, they are issued a session key in the form of a signed
cookie. The session itself lives in a key-value store (Redis), and records
whether the visitor is authenticated and as which user. Anonymous visitors
following a reset link also get a session, which holds the reset token until
the new password is submitted.

Users and cases are kept in a relational database. A case row is shared by
all users tracking the same receipt number; each user keeps their own label
for it. Status synchronization runs either on request (``/update``, suitable
for a cron job) or as a periodic Celery task.
"""
