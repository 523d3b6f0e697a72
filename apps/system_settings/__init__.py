"""
System settings application.

Core system configuration (time synchronization, time zone, date-time
format), settings rollback and the NTP sync job.
"""
