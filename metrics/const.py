"""
Constants shared by the metrics engine.
"""

MONITORING_SERVICES = ('CloudWatch', 'Mackerel', 'Datadog')

METRIC_STATUS_VISIBLE = 'visible'
METRIC_STATUS_HIDDEN = 'hidden'
METRIC_STATUSES = (METRIC_STATUS_VISIBLE, METRIC_STATUS_HIDDEN)

METRIC_ID_LENGTH = 12
