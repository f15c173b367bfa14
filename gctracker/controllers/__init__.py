"""
Request controllers for the GC Tracker user interface.

Each controller takes request parameters that the route has already pulled
out of the request, and returns ``(data, status_code, headers)``. Routes turn
that into a rendered page or a redirect, and set any cookies found under
``data['cookies']``.
"""
