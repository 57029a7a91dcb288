# backup_runner/error_parser.py
from typing import Optional

UNKNOWN_ERROR = "Unknown error: the backup failed for an unidentified reason. Check the full log for details."


def parse_backup_error(stderr: Optional[str], engine: str) -> str:
    """
    Parses the stderr output from a dump command and returns a human-readable summary.
    """
    if not stderr:
        return UNKNOWN_ERROR

    stderr = stderr.lower()

    if "timed out" in stderr or "timeout expired" in stderr:
        return "Timeout: the operation did not finish before its deadline."

    if engine == "postgresql":
        if "password authentication failed" in stderr:
            return "Authentication error: the supplied password was rejected."
        if "authentication failed" in stderr:
            return "Authentication error: the username or password is incorrect."
        if "does not exist" in stderr and "database" in stderr:
            return "Database error: the requested database does not exist."
        if "connection refused" in stderr:
            return "Connection error: could not connect to the database server. Check the host and port."
        if "could not translate host name" in stderr:
            return "Connection error: the host name could not be resolved. Check the server address."
        if "permission denied" in stderr:
            return "Permission error: the user lacks the privileges needed to dump the database."

    elif engine == "mongodb":
        if "authentication failed" in stderr:
            return "Authentication error: the username or password is incorrect."
        if "could not connect to server" in stderr:
            return "Connection error: could not connect to the server. Check the address and port."
        if "failed to connect" in stderr:
            return "Connection error: failed to connect to the server. Check the network configuration."

    elif engine == "mysql":
        if "access denied" in stderr:
            return "Authentication error: the username or password is incorrect."
        if "unknown database" in stderr:
            return "Database error: the requested database does not exist."
        if "can't connect" in stderr or "connection refused" in stderr:
            return "Connection error: could not connect to the database server. Check the host and port."
        if "unknown mysql server host" in stderr:
            return "Connection error: the host name could not be resolved. Check the server address."

    if "no such file or directory" in stderr or "not found" in stderr:
        return "Missing tool: the dump or archive command is not installed or the file is missing."

    return UNKNOWN_ERROR
