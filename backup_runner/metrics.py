from prometheus_client import Counter, Histogram, Gauge

BACKUP_CYCLES_TOTAL = Counter(
    "backup_cycles_total",
    "Total number of backup cycles.",
    ["status"]
)

BACKUPS_TOTAL = Counter(
    "backups_total",
    "Total number of backups.",
    ["database_name", "status"]
)

BACKUP_DURATION_SECONDS = Histogram(
    "backup_duration_seconds",
    "Duration of backup operations in seconds.",
    ["database_name"]
)

BACKUP_SIZE_BYTES = Gauge(
    "backup_size_bytes",
    "Size of the last successful backup in bytes.",
    ["database_name"]
)

DISK_SPACE_AVAILABLE_BYTES = Gauge(
    "disk_space_available_bytes",
    "Available disk space for temporary backup files in bytes."
)

BACKUP_LAST_STATUS = Gauge(
    "backup_last_status",
    "Status of the last backup (1 for success, 0 for failure).",
    ["database_name"]
)

BACKUP_LAST_SUCCESS_TIMESTAMP_SECONDS = Gauge(
    "backup_last_success_timestamp_seconds",
    "Timestamp of the last successful backup.",
    ["database_name"]
)
