"""Structured JSON logging with trace correlation."""
import logging
import sys
from typing import Union
from pythonjsonlogger import jsonlogger
from opentelemetry import trace

from config import DEPLOYMENT_ENVIRONMENT, OTEL_EXPORTER_OTLP_ENDPOINT, SERVICE_NAME, TELEMETRY_ENABLED

# The OpenTelemetry logs SDK is still experimental and may be missing
try:
    from opentelemetry._logs import set_logger_provider
    from opentelemetry.sdk._logs import LoggerProvider, LoggingHandler
    from opentelemetry.sdk._logs.export import BatchLogRecordProcessor
    from opentelemetry.exporter.otlp.proto.grpc._log_exporter import OTLPLogExporter
    from opentelemetry.sdk.resources import Resource
    OTLP_LOGGING_AVAILABLE = True
except ImportError:
    OTLP_LOGGING_AVAILABLE = False

# Libraries whose INFO output drowns business logs
QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore")


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter stamping service, environment and the active trace."""

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)

        span_context = trace.get_current_span().get_span_context()
        if span_context.is_valid:
            log_record['trace_id'] = format(span_context.trace_id, '032x')
            log_record['span_id'] = format(span_context.span_id, '016x')
            log_record['trace_flags'] = span_context.trace_flags

        log_record['service'] = SERVICE_NAME
        log_record['environment'] = DEPLOYMENT_ENVIRONMENT

        if 'message' in log_record:
            log_record['msg'] = log_record.pop('message')


def _console_handler() -> logging.Handler:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(CustomJsonFormatter(
        '%(levelname)s %(name)s %(message)s',
        rename_fields={'levelname': 'level'}
    ))
    return handler


def _otlp_handler() -> logging.Handler:
    """Handler shipping records to the OTLP collector."""
    logger_provider = LoggerProvider(resource=Resource.create({
        "service.name": SERVICE_NAME,
        "deployment.environment": DEPLOYMENT_ENVIRONMENT
    }))
    logger_provider.add_log_record_processor(
        BatchLogRecordProcessor(OTLPLogExporter(endpoint=OTEL_EXPORTER_OTLP_ENDPOINT, insecure=True))
    )
    set_logger_provider(logger_provider)
    return LoggingHandler(level=logging.INFO, logger_provider=logger_provider)


def setup_logging(level: Union[int, str] = logging.INFO) -> None:
    """
    Replace the root handlers with JSON stdout and, when telemetry is on, OTLP export.

    Args:
        level: Root level as a number or a name such as "DEBUG"
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    root_logger.addHandler(_console_handler())

    if not TELEMETRY_ENABLED:
        logging.info("Telemetry disabled - logs will only go to stdout")
    elif not OTLP_LOGGING_AVAILABLE:
        logging.warning("OTLP logging SDK not available - logs will only go to stdout")
    else:
        try:
            root_logger.addHandler(_otlp_handler())
            logging.info("OTLP logging handler configured")
        except Exception as e:
            logging.warning(f"Failed to configure OTLP logging handler: {e}")

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
