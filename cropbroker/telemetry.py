"""OpenTelemetry metrics and logs for the crop brokerage backend."""

import logging
import os
from decimal import Decimal

from opentelemetry import metrics
from opentelemetry._logs import set_logger_provider
from opentelemetry.exporter.otlp.proto.http.metric_exporter import OTLPMetricExporter
from opentelemetry.exporter.otlp.proto.http._log_exporter import OTLPLogExporter
from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import PeriodicExportingMetricReader
from opentelemetry.sdk.resources import Resource

from cropbroker._version import VERSION


# Module-level state
_initialized = False
_meter = None
_log_handler = None

# Counters (cumulative)
_trades_total = None
_orders_total = None
_orders_confirmed_total = None
_commission_total = None
_purchase_orders_total = None
_purchase_order_value_total = None
_notifications_total = None


def setup_telemetry() -> bool:
    """Initialize OpenTelemetry metrics and log export.

    Returns True if telemetry was initialized, False if disabled.
    """
    global _initialized, _meter, _log_handler
    global _trades_total, _orders_total, _orders_confirmed_total, _commission_total
    global _purchase_orders_total, _purchase_order_value_total, _notifications_total

    if _initialized:
        return True

    if os.getenv("OTLP_ENABLED", "true").lower() == "false":
        return False

    otlp_endpoint = os.getenv("OTLP_ENDPOINT", "http://localhost:4318/v1/metrics")
    export_interval = int(os.getenv("OTLP_EXPORT_INTERVAL", "5000"))

    resource = Resource.create({
        "service.name": "cropbroker",
        "service.version": VERSION,
    })

    exporter = OTLPMetricExporter(endpoint=otlp_endpoint)
    reader = PeriodicExportingMetricReader(
        exporter,
        export_interval_millis=export_interval,
    )
    provider = MeterProvider(resource=resource, metric_readers=[reader])
    metrics.set_meter_provider(provider)

    _meter = metrics.get_meter("cropbroker", VERSION)

    _trades_total = _meter.create_counter(
        "broker_trades_total",
        description="Total number of trades posted by brokers",
        unit="1",
    )

    _orders_total = _meter.create_counter(
        "broker_orders_total",
        description="Total number of orders created from supplier responses",
        unit="1",
    )

    _orders_confirmed_total = _meter.create_counter(
        "broker_orders_confirmed_total",
        description="Total number of orders confirmed, by entry point",
        unit="1",
    )

    _commission_total = _meter.create_counter(
        "broker_commission_booked_total",
        description="Commission booked at order creation",
        unit="currency",
    )

    _purchase_orders_total = _meter.create_counter(
        "broker_purchase_orders_total",
        description="Total number of purchase orders placed",
        unit="1",
    )

    _purchase_order_value_total = _meter.create_counter(
        "broker_purchase_order_value_total",
        description="Credit consumed by purchase orders",
        unit="currency",
    )

    _notifications_total = _meter.create_counter(
        "broker_notifications_total",
        description="Outbound WhatsApp messages, by outcome",
        unit="1",
    )

    # === LOGS ===
    logs_endpoint = otlp_endpoint.replace("/v1/metrics", "/v1/logs")
    log_exporter = OTLPLogExporter(endpoint=logs_endpoint)
    logger_provider = LoggerProvider(resource=resource)
    logger_provider.add_log_record_processor(BatchLogRecordProcessor(log_exporter))
    set_logger_provider(logger_provider)

    _log_handler = LoggingHandler(
        level=logging.INFO,
        logger_provider=logger_provider,
    )

    _initialized = True
    return True


def get_log_handler() -> LoggingHandler | None:
    """Get the OTLP logging handler to attach to Python loggers."""
    return _log_handler


def is_enabled() -> bool:
    """Check if telemetry is initialized and enabled."""
    return _initialized


# --- Counter update functions ---

def record_trade_created(crop: str) -> None:
    if not _initialized:
        return

    _trades_total.add(1, {"crop": crop})


def record_order_created(status: str, total_commission: Decimal) -> None:
    """Record an order and the commission booked on it."""
    if not _initialized:
        return

    attributes = {"status": status}
    _orders_total.add(1, attributes)
    _commission_total.add(float(total_commission), attributes)


def record_order_confirmed(channel: str) -> None:
    """Record a confirmation; channel is "chat" or "api"."""
    if not _initialized:
        return

    _orders_confirmed_total.add(1, {"channel": channel})


def record_purchase_order(total_amount: Decimal) -> None:
    if not _initialized:
        return

    _purchase_orders_total.add(1)
    _purchase_order_value_total.add(float(total_amount))


def record_notification(delivered: bool) -> None:
    if not _initialized:
        return

    _notifications_total.add(1, {"outcome": "delivered" if delivered else "failed"})
