"""
refract - Reflected parameter and unfiltered character prober

Streams URLs through a three-stage async pipeline that finds query
parameters echoed back by the server, confirms them with an opaque marker,
and reports which syntactically significant characters survive unescaped.
Database error fingerprints in the responses are flagged as possible
SQL injection.

Licensed under MIT License
"""

__version__ = "1.0.0"
__author__ = "refract Team"
__status__ = "Development"
