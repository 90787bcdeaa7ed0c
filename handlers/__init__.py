"""
handlers/ - Presentation Layer
================================
Turns an HTTP method and body into a response. Handlers delegate storage to
the repositories and are the only place errors become HTTP status codes.
"""
