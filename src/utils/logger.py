"""Structured logging configuration for the SkillSoft assessment server.

This module provides structured logging with different handlers for development
and production environments, including JSON formatting for log aggregation.
"""

import logging
import logging.handlers
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger


class SkillSoftFormatter(jsonlogger.JsonFormatter):
    """JSON formatter adding service metadata to every record."""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        """Add custom fields to log record.

        Args:
            log_record: The log record dictionary to modify
            record: The original logging record
            message_dict: Additional message data
        """
        super().add_fields(log_record, record, message_dict)

        log_record['timestamp'] = datetime.now(timezone.utc).isoformat()
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['module'] = record.module
        log_record['function'] = record.funcName
        log_record['line'] = record.lineno

        log_record['application'] = 'skillsoft'
        log_record['service'] = 'assessment-api'

        log_record['process_id'] = record.process

        if record.exc_info:
            log_record['exception'] = self.formatException(record.exc_info)


class ContextFilter(logging.Filter):
    """Filter to add contextual information to log records."""

    def __init__(self, context: Optional[Dict[str, Any]] = None):
        """Initialize context filter.

        Args:
            context: Additional context to add to all log records
        """
        super().__init__()
        self.context = context or {}

    def filter(self, record: logging.LogRecord) -> bool:
        for key, value in self.context.items():
            setattr(record, key, value)
        return True


class RequestContextFilter(logging.Filter):
    """Filter stamping the current request id onto log records."""

    def filter(self, record: logging.LogRecord) -> bool:
        # Imported lazily; the middleware module imports this one.
        from src.api.middleware.request_id import get_request_id

        request_id = get_request_id()
        if request_id:
            record.request_id = request_id
        return True


class LoggerConfig:
    """Logger configuration manager."""

    COMPONENTS = {
        'api': 'skillsoft.api',
        'database': 'skillsoft.database',
        'cache': 'skillsoft.cache',
        'scoring': 'skillsoft.scoring',
        'assembly': 'skillsoft.assembly',
        'simulation': 'skillsoft.simulation',
        'psychometrics': 'skillsoft.psychometrics',
        'events': 'skillsoft.events',
    }

    def __init__(self, environment: str = 'development', log_level: str = 'INFO'):
        """Initialize logger configuration.

        Args:
            environment: Environment name (development, production, test)
            log_level: Default log level
        """
        self.environment = environment
        self.log_level = getattr(logging, log_level.upper())
        self.log_dir = Path("logs")

        self._configure_root_logger()
        self._configure_component_loggers()

    def _configure_root_logger(self) -> None:
        root_logger = logging.getLogger()
        root_logger.setLevel(self.log_level)
        root_logger.handlers.clear()

        if self.environment == 'production':
            self._add_production_handlers(root_logger)
        elif self.environment == 'test':
            self._add_test_handlers(root_logger)
        else:
            self._add_development_handlers(root_logger)

    def _add_production_handlers(self, logger: logging.Logger) -> None:
        """Add JSON console and rotating file handlers.

        Args:
            logger: Logger to configure
        """
        self.log_dir.mkdir(exist_ok=True)

        json_formatter = SkillSoftFormatter(
            fmt='%(timestamp)s %(level)s %(logger)s %(message)s'
        )

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.INFO)
        console_handler.setFormatter(json_formatter)
        console_handler.addFilter(RequestContextFilter())
        logger.addHandler(console_handler)

        error_handler = logging.handlers.RotatingFileHandler(
            filename=self.log_dir / "error.log",
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
            encoding='utf-8'
        )
        error_handler.setLevel(logging.ERROR)
        error_handler.setFormatter(json_formatter)
        error_handler.addFilter(RequestContextFilter())
        logger.addHandler(error_handler)

        # Scoring and audit jobs are the high-volume writers
        app_handler = logging.handlers.RotatingFileHandler(
            filename=self.log_dir / "application.log",
            maxBytes=50 * 1024 * 1024,  # 50MB
            backupCount=10,
            encoding='utf-8'
        )
        app_handler.setLevel(logging.INFO)
        app_handler.setFormatter(json_formatter)
        app_handler.addFilter(RequestContextFilter())
        logger.addHandler(app_handler)

    def _add_development_handlers(self, logger: logging.Logger) -> None:
        """Add development-friendly handlers.

        Args:
            logger: Logger to configure
        """
        self.log_dir.mkdir(exist_ok=True)

        dev_formatter = logging.Formatter(
            fmt='%(asctime)s | %(levelname)-8s | %(name)-28s | %(funcName)-20s:%(lineno)-3d | %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.DEBUG)
        console_handler.setFormatter(dev_formatter)
        logger.addHandler(console_handler)

        debug_handler = logging.FileHandler(
            filename=self.log_dir / "debug.log",
            mode='a',
            encoding='utf-8'
        )
        debug_handler.setLevel(logging.DEBUG)
        debug_handler.setFormatter(dev_formatter)
        logger.addHandler(debug_handler)

    def _add_test_handlers(self, logger: logging.Logger) -> None:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.WARNING)
        console_handler.setFormatter(logging.Formatter(
            fmt='TEST | %(levelname)s | %(name)s | %(message)s'
        ))
        logger.addHandler(console_handler)

    def _configure_component_loggers(self) -> None:
        for component, logger_name in self.COMPONENTS.items():
            logger = logging.getLogger(logger_name)
            logger.setLevel(self.log_level)
            logger.addFilter(ContextFilter({'component': component}))

    def get_logger(self, name: str) -> logging.Logger:
        """Get a logger instance.

        Args:
            name: Logger name

        Returns:
            logging.Logger: Configured logger instance
        """
        return logging.getLogger(name)

    def get_component_logger(self, component: str) -> logging.Logger:
        """Get a component-specific logger.

        Args:
            component: Component name (api, scoring, assembly, etc.)

        Returns:
            logging.Logger: Component logger

        Raises:
            ValueError: If component is not recognized
        """
        if component not in self.COMPONENTS:
            raise ValueError(f"Unknown component: {component}. Available: {list(self.COMPONENTS.keys())}")

        return logging.getLogger(self.COMPONENTS[component])


_logger_config: Optional[LoggerConfig] = None


def setup_logging(environment: str = 'development', log_level: str = 'INFO') -> LoggerConfig:
    """Setup application logging.

    Args:
        environment: Environment name
        log_level: Log level

    Returns:
        LoggerConfig: Configured logger instance
    """
    global _logger_config
    _logger_config = LoggerConfig(environment, log_level)
    return _logger_config


def get_logger(name: str = __name__) -> logging.Logger:
    """Get a logger instance.

    Args:
        name: Logger name, defaults to caller's module name

    Returns:
        logging.Logger: Logger instance
    """
    if _logger_config is None:
        setup_logging()

    return _logger_config.get_logger(name)


def get_component_logger(component: str) -> logging.Logger:
    """Get a component-specific logger.

    Args:
        component: Component name

    Returns:
        logging.Logger: Component logger
    """
    if _logger_config is None:
        setup_logging()

    return _logger_config.get_component_logger(component)


def get_api_logger() -> logging.Logger:
    """Get API component logger."""
    return get_component_logger('api')


def get_scoring_logger() -> logging.Logger:
    """Get scoring component logger."""
    return get_component_logger('scoring')


def get_assembly_logger() -> logging.Logger:
    """Get assembly component logger."""
    return get_component_logger('assembly')


def get_simulation_logger() -> logging.Logger:
    """Get simulation component logger."""
    return get_component_logger('simulation')


def get_psychometrics_logger() -> logging.Logger:
    """Get psychometrics component logger."""
    return get_component_logger('psychometrics')


def get_events_logger() -> logging.Logger:
    """Get domain events logger."""
    return get_component_logger('events')


def log_api_request(method: str, path: str, user_id: Optional[str] = None, logger: Optional[logging.Logger] = None) -> None:
    """Log API request.

    Args:
        method: HTTP method
        path: Request path
        user_id: Caller identity if known
        logger: Logger instance
    """
    if logger is None:
        logger = get_api_logger()

    logger.info(f"{method} {path}", extra={
        'http_method': method,
        'request_path': path,
        'user_id': user_id,
        'event_type': 'api_request'
    })


def log_api_response(method: str, path: str, status_code: int, duration_ms: float, logger: Optional[logging.Logger] = None) -> None:
    """Log API response.

    Args:
        method: HTTP method
        path: Request path
        status_code: HTTP status code
        duration_ms: Request duration in milliseconds
        logger: Logger instance
    """
    if logger is None:
        logger = get_api_logger()

    level = logging.WARNING if status_code >= 400 else logging.INFO

    logger.log(level, f"{method} {path} - {status_code}", extra={
        'http_method': method,
        'request_path': path,
        'status_code': status_code,
        'duration_ms': duration_ms,
        'event_type': 'api_response'
    })


def log_domain_event(event_name: str, payload: Dict[str, Any], logger: Optional[logging.Logger] = None) -> None:
    """Log a published domain event.

    Args:
        event_name: Event type name
        payload: Serialised event payload
        logger: Logger instance
    """
    if logger is None:
        logger = get_events_logger()

    logger.info(f"Event: {event_name}", extra={
        'domain_event': event_name,
        'event_payload': payload,
        'event_type': 'domain_event'
    })


class PerformanceLogger:
    """Context manager for performance logging."""

    def __init__(self, operation: str, logger: Optional[logging.Logger] = None, extra: Optional[Dict[str, Any]] = None):
        """Initialize performance logger.

        Args:
            operation: Operation name
            logger: Logger instance
            extra: Additional fields to log
        """
        self.operation = operation
        self.logger = logger or get_logger()
        self.extra = extra or {}
        self.start_time: Optional[datetime] = None
        self.duration_ms: float = 0.0

    def __enter__(self) -> 'PerformanceLogger':
        self.start_time = datetime.now(timezone.utc)
        self.logger.debug(f"Starting {self.operation}", extra={
            'operation': self.operation,
            'event_type': 'performance_start',
            **self.extra
        })
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if self.start_time:
            duration = datetime.now(timezone.utc) - self.start_time
            self.duration_ms = duration.total_seconds() * 1000

            level = logging.WARNING if self.duration_ms > 5000 else logging.INFO

            self.logger.log(level, f"Completed {self.operation}", extra={
                'operation': self.operation,
                'duration_ms': self.duration_ms,
                'event_type': 'performance_end',
                'success': exc_type is None,
                **self.extra
            })
