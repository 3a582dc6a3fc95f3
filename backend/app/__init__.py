"""DayBalance backend application package."""
