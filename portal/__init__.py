"""Hospital portal application.

Role-based dashboard and directory endpoints served on top of the
hospital backend REST API, plus the appointment slot calculator used
by the booking form.
"""
