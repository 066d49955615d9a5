"""
Prometheus registry and marketplace counters.

Services record domain events here; the metrics blueprint exposes the
registry and adds HTTP request instrumentation.
"""
import os

from prometheus_client import Counter, CollectorRegistry, REGISTRY, multiprocess

# Gunicorn workers share metrics through PROMETHEUS_MULTIPROC_DIR
MULTIPROCESS_MODE = os.environ.get('PROMETHEUS_MULTIPROC_DIR') is not None

if MULTIPROCESS_MODE:
    registry = CollectorRegistry()
    multiprocess.MultiProcessCollector(registry)
else:
    registry = REGISTRY

# Metrics must not be bound to the collector registry in multiprocess mode
metric_registry = registry if not MULTIPROCESS_MODE else None

payments_confirmed_total = Counter(
    'petverse_payments_confirmed_total',
    'Payments moved to success, by what they pay for',
    ['reference'],
    registry=metric_registry
)

loyalty_points_moved_total = Counter(
    'petverse_loyalty_points_moved_total',
    'Loyalty points debited or credited',
    ['direction'],
    registry=metric_registry
)

otp_verifications_total = Counter(
    'petverse_otp_verifications_total',
    'OTP verification attempts by result',
    ['result'],
    registry=metric_registry
)

checkout_shortages_total = Counter(
    'petverse_checkout_shortages_total',
    'Cart lines dropped or reduced at checkout',
    ['kind'],
    registry=metric_registry
)
