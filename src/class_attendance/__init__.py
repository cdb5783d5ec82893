"""Class Attendance package.

Session lifecycle and attendance verification for timed class sessions,
organized by feature modules (sessions, attendance, closure, lifecycle, ...)
with a thin Flask controller layer over service/repository layers.
"""
