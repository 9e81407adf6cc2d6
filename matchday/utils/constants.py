"""
Constants shared across the Matchday services.
"""

# Account rules
MIN_PASSWORD_LENGTH = 4
SESSION_TOKEN_DAYS = 30  # Token and cookie lifetime; no refresh, re-login on expiry
SESSION_COOKIE_NAME = "token"

# Reminder thresholds
IMMINENT_REMINDER_MINUTES = 30
ADVANCE_REMINDER_HOURS = 24
ADVANCE_REMINDER_WINDOW_HOURS = 1  # advance reminders fire between 23h and 24h out

# Listing limits
RECENT_MATCHES_LIMIT = 10
RECENT_ACTIVITY_LIMIT = 10
RECENT_GOALS_LIMIT = 5
ACTIVITY_FEED_LIMIT = 15
