from prometheus_client import Counter, Gauge, Histogram


class InventoryMetrics:
    """
    Inventory engine metrics collector

    Tracks hold lifecycle outcomes, optimistic-concurrency pressure and sweeper health.
    """

    def __init__(self) -> None:
        # ========== Hold Lifecycle Metrics ==========
        self.hold_requests = Counter(
            'inventory_hold_requests_total',
            'Total hold requests',
            ['channel', 'result'],  # result: granted/insufficient/transient
        )

        self.hold_request_duration = Histogram(
            'inventory_hold_request_duration_seconds',
            'Hold request processing time',
            ['channel'],
            buckets=[0.001, 0.005, 0.01, 0.05, 0.1, 0.2, 0.5, 1.0, 2.0],
        )

        self.holds_terminated = Counter(
            'inventory_holds_terminated_total',
            'Holds moved to a terminal status',
            ['status'],  # released/expired/completed
        )

        # ========== Concurrency Metrics ==========
        self.version_conflicts = Counter(
            'inventory_version_conflicts_total',
            'Optimistic concurrency collisions on the ledger',
            ['operation'],
        )

        self.conflict_resolutions = Counter(
            'inventory_conflict_resolutions_total',
            'Coalesced contention batches settled by the conflict resolver',
            ['strategy'],
        )

        # ========== Sweeper Metrics ==========
        self.sweep_cycles = Counter(
            'inventory_sweep_cycles_total',
            'Expiry sweeper cycles',
            ['result'],  # ok/partial
        )

        self.sweep_expired_holds = Counter(
            'inventory_sweep_expired_holds_total',
            'Holds expired by the sweeper',
        )

        self.available_quantity = Gauge(
            'inventory_available_quantity',
            'Available quantity per ticket type',
            ['ticket_type_id'],
        )


metrics = InventoryMetrics()
