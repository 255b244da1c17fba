from order_chat_service.app.config import settings
import logging
from typing import List
from opentelemetry import trace, metrics
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor, ConsoleSpanExporter, SpanExporter
from opentelemetry.sdk.metrics import MeterProvider
from opentelemetry.sdk.metrics.export import MetricReader, PeriodicExportingMetricReader, ConsoleMetricExporter
from opentelemetry.sdk.resources import Resource, SERVICE_NAME as ResourceAttributesServiceName
from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import OTLPSpanExporter
from opentelemetry.exporter.otlp.proto.grpc.metric_exporter import OTLPMetricExporter
from pythonjsonlogger import jsonlogger


logger = logging.getLogger("order_chat_service")

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(funcName)s %(lineno)d %(otelTraceID)s %(otelSpanID)s %(message)s"


class ServiceJsonFormatter(jsonlogger.JsonFormatter):
    """Stamps every record with the service name so API and worker logs can share an index."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        log_record.setdefault("service", settings.SERVICE_NAME_API)


def setup_json_logging():
    root_logger = logging.getLogger()
    if any(isinstance(h.formatter, ServiceJsonFormatter) for h in root_logger.handlers):
        return
    handler = logging.StreamHandler()
    handler.setFormatter(ServiceJsonFormatter(
        fmt=LOG_FORMAT,
        rename_fields={"levelname": "level", "name": "logger_name", "asctime": "timestamp"},
    ))
    root_logger.handlers = [handler]
    level = settings.LOG_LEVEL.upper()
    root_logger.setLevel(level)
    # pymongo logs every heartbeat at DEBUG
    logging.getLogger("pymongo").setLevel("INFO" if level == "DEBUG" else level)


def _span_exporters() -> List[SpanExporter]:
    if settings.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT:
        logger.info(f"Exporting spans to {settings.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT}")
        return [OTLPSpanExporter(endpoint=settings.OTEL_EXPORTER_OTLP_TRACES_ENDPOINT, insecure=True)]
    return [ConsoleSpanExporter()]


def _metric_readers() -> List[MetricReader]:
    if settings.OTEL_EXPORTER_OTLP_METRICS_ENDPOINT:
        logger.info(f"Exporting metrics to {settings.OTEL_EXPORTER_OTLP_METRICS_ENDPOINT}")
        exporter = OTLPMetricExporter(endpoint=settings.OTEL_EXPORTER_OTLP_METRICS_ENDPOINT, insecure=True)
        return [PeriodicExportingMetricReader(exporter, export_interval_millis=5000)]
    return [PeriodicExportingMetricReader(ConsoleMetricExporter(), export_interval_millis=60000)]


def setup_opentelemetry(service_name: str):
    """
    Installs the SDK tracer and meter providers.

    OTLP exporters replace the console ones when their endpoints are set.
    Must run before the instrumentors are imported and before any span is
    started, otherwise the module-level `tracer` stays a no-op proxy.
    """
    resource = Resource(attributes={ResourceAttributesServiceName: service_name})

    tracer_provider = TracerProvider(resource=resource)
    for exporter in _span_exporters():
        tracer_provider.add_span_processor(BatchSpanProcessor(exporter))
    trace.set_tracer_provider(tracer_provider)

    metrics.set_meter_provider(MeterProvider(resource=resource, metric_readers=_metric_readers()))
    logger.info(f"OpenTelemetry configured for service: {service_name}.")

setup_json_logging()

tracer = trace.get_tracer("order_chat_service.tracer")
meter = metrics.get_meter("order_chat_service.meter")

# --- Order metrics ---
order_status_transitions_counter = meter.create_counter(
    name="order_chat.orders.status.transitions.total",
    description="Status-axis mutations applied to review orders, by operation.",
    unit="1"
)
order_finalizations_counter = meter.create_counter(
    name="order_chat.orders.finalizations.total",
    description="Finalized order records created, by path (approve/finalize).",
    unit="1"
)

# --- Chat metrics ---
chat_messages_persisted_counter = meter.create_counter(
    name="order_chat.chat.messages.persisted.total",
    description="Chat messages persisted, by message type.",
    unit="1"
)
chat_events_rejected_counter = meter.create_counter(
    name="order_chat.chat.events.rejected.total",
    description="Inbound chat events rejected before broadcast, by reason.",
    unit="1"
)
chat_connections_gauge = meter.create_up_down_counter(
    name="order_chat.chat.connections.active",
    description="Chat connections registered in this process.",
    unit="1"
)
