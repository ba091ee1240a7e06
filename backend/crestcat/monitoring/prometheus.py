# backend/crestcat/monitoring/prometheus.py
from prometheus_client import Counter, Histogram


def get_balance_movements_total():
    """
    Returns a singleton Counter for balance movements, labelled by reason.
    Ensures the metric is only registered once per process.
    """
    if not hasattr(get_balance_movements_total, "_counter"):
        get_balance_movements_total._counter = Counter(
            "balance_movements_total",
            "Total balance movements written by the ledger",
            ["reason"]
        )
    return get_balance_movements_total._counter


def get_investment_transitions_total():
    """
    Returns a singleton Counter for investment lifecycle transitions.
    """
    if not hasattr(get_investment_transitions_total, "_counter"):
        get_investment_transitions_total._counter = Counter(
            "investment_transitions_total",
            "Investment lifecycle transitions",
            ["event"]
        )
    return get_investment_transitions_total._counter


def get_withdrawal_transitions_total():
    """
    Returns a singleton Counter for withdrawal lifecycle transitions.
    """
    if not hasattr(get_withdrawal_transitions_total, "_counter"):
        get_withdrawal_transitions_total._counter = Counter(
            "withdrawal_transitions_total",
            "Withdrawal lifecycle transitions",
            ["event"]
        )
    return get_withdrawal_transitions_total._counter


def get_notification_failures_total():
    """
    Returns a singleton Counter for swallowed notification failures.
    """
    if not hasattr(get_notification_failures_total, "_counter"):
        get_notification_failures_total._counter = Counter(
            "notification_failures_total",
            "Notification deliveries that failed",
            ["channel"]
        )
    return get_notification_failures_total._counter


def get_reconciliation_duration_seconds():
    """
    Returns a singleton Histogram for price reconciliation passes.
    """
    if not hasattr(get_reconciliation_duration_seconds, "_histogram"):
        get_reconciliation_duration_seconds._histogram = Histogram(
            "reconciliation_duration_seconds",
            "Duration of price reconciliation passes in seconds",
            buckets=[0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0]
        )
    return get_reconciliation_duration_seconds._histogram


def get_reconciliation_passes_total():
    """
    Returns a singleton Counter for completed reconciliation passes.
    """
    if not hasattr(get_reconciliation_passes_total, "_counter"):
        get_reconciliation_passes_total._counter = Counter(
            "reconciliation_passes_total",
            "Completed price reconciliation passes"
        )
    return get_reconciliation_passes_total._counter
