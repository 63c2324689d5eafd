"""Services for the timesheet engine."""
