"""
Exit codes for the todograph CLI.

Semantic exit codes, so scripts can tell a rejected operation from a
missing task.
"""

# Success
SUCCESS = 0

# General error (unspecified)
ERROR_GENERAL = 1

# Invalid arguments or validation error
ERROR_INVALID_ARGS = 2

# Resource not found
ERROR_NOT_FOUND = 5
