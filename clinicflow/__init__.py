"""
Clinical operations workflow core.

Covers OPD registration and token sequencing, consultations, pharmacy
dispensing against batched stock, billing, and inpatient bed occupancy.
"""
__version__ = "1.0.0"
