"""Face enrollment and verification engine for attendance marking."""
