"""Prometheus metrics for complaint image uploads."""

from prometheus_client import Counter


UPLOAD_ATTEMPTS = Counter(
    "upload_image_attempts_total",
    "Total number of complaint image upload attempts",
)
UPLOAD_SUCCESSES = Counter(
    "upload_image_success_total",
    "Total number of successful complaint image uploads",
)
UPLOAD_FAILURES = Counter(
    "upload_image_failure_total",
    "Total number of complaint image uploads that failed in the object store",
)
UPLOAD_REJECTED = Counter(
    "upload_image_rejected_total",
    "Total number of complaint images rejected before upload (size or format)",
    ["reason"],
)
