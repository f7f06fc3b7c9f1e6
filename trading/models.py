from django.db import models


class Order(models.Model):
    """
    One row per logical MT5 order/position.

    ``lookup_key`` is the position id when the EA reports one, else the ticket;
    every later event for the same (account, lookup_key) mutates this row.
    """
    id = models.BigAutoField(primary_key=True)
    ticket_id = models.CharField(max_length=64)
    position_id = models.CharField(max_length=64, null=True, blank=True)
    lookup_key = models.CharField(max_length=64)
    account = models.CharField(max_length=64)
    broker = models.CharField(max_length=255)

    symbol = models.CharField(max_length=32)
    order_type = models.CharField(max_length=20)  # E.g., 'BUY', 'SELL_LIMIT'
    lots = models.FloatField(default=0)
    open_price = models.FloatField(default=0)
    close_price = models.FloatField(null=True, blank=True)
    stop_loss = models.FloatField(null=True, blank=True)
    take_profit = models.FloatField(null=True, blank=True)
    # Values before the most recent SL/TP update, for "changed from X to Y" messages.
    old_stop_loss = models.FloatField(null=True, blank=True)
    old_take_profit = models.FloatField(null=True, blank=True)
    profit = models.FloatField(null=True, blank=True)
    swap = models.FloatField(null=True, blank=True)
    commission = models.FloatField(null=True, blank=True)

    deal_type = models.CharField(max_length=32, null=True, blank=True)
    deal_volume = models.FloatField(null=True, blank=True)
    deal_profit = models.FloatField(null=True, blank=True)
    deal_swap = models.FloatField(null=True, blank=True)
    partial_close = models.FloatField(null=True, blank=True)

    event_type = models.CharField(max_length=32)
    event_timestamp = models.DateTimeField()
    close_time = models.DateTimeField(null=True, blank=True)

    sector = models.CharField(max_length=64, null=True, blank=True)
    schema_version = models.CharField(max_length=32, null=True, blank=True)
    ea_version = models.CharField(max_length=32, null=True, blank=True)
    comment = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "orders"
        constraints = [
            models.UniqueConstraint(fields=["account", "lookup_key"], name="unique_order_account_lookup_key"),
        ]
        indexes = [
            models.Index(fields=["ticket_id"], name="orders_ticket_id_idx"),
            models.Index(fields=["sector"], name="orders_sector_idx"),
        ]

    def __str__(self):
        return f"Order {self.ticket_id} {self.symbol} ({self.event_type})"
