"""Application constants."""

# Scheduled job id in APScheduler
DAILY_REPORT_SCHEDULE_ID = "daily_group_report"

# Requester recorded in cooldown records for timer-driven runs
SCHEDULER_REQUESTER = "scheduler"

# Telegram message limit
TELEGRAM_MESSAGE_LIMIT = 4096

# Label prefixed to topic details appended from a later batch
TOPIC_CONTINUATION_LABEL = "[continued]"

# User-facing outcome messages
GENERATION_IN_PROGRESS_MESSAGE = "A report for this group is already being generated, please try again later."
GENERATION_FAILED_MESSAGE = "Report generation failed, see the logs for details."
NOT_ENOUGH_MESSAGES_MESSAGE = "Not enough messages today to analyze (need at least {threshold})."
COOLDOWN_MESSAGE = "Showing the cached report, a new one can be generated in {minutes} min."
