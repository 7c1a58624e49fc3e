import logging
import logging.handlers
import os
from pathlib import Path

# Create logs directory if it doesn't exist
LOGS_DIR = Path(os.getenv("LOG_DIR", "logs"))
LOGS_DIR.mkdir(parents=True, exist_ok=True)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Logging configuration
def setup_logging():
    """Setup logging handlers for the feed formulation records service"""

    # Create formatters
    detailed_formatter = logging.Formatter(
        '%(asctime)s | %(name)s | %(levelname)s | %(filename)s:%(lineno)d | %(funcName)s | %(message)s'
    )

    simple_formatter = logging.Formatter(
        '%(asctime)s | %(levelname)s | %(message)s'
    )

    handlers = {}

    # 1. General application log
    app_handler = logging.handlers.RotatingFileHandler(
        LOGS_DIR / "app.log",
        maxBytes=10*1024*1024,  # 10MB
        backupCount=5
    )
    app_handler.setLevel(logging.INFO)
    app_handler.setFormatter(detailed_formatter)
    handlers['app'] = app_handler

    # 2. API request/response log
    api_handler = logging.handlers.RotatingFileHandler(
        LOGS_DIR / "api.log",
        maxBytes=10*1024*1024,  # 10MB
        backupCount=5
    )
    api_handler.setLevel(logging.INFO)
    api_handler.setFormatter(detailed_formatter)
    handlers['api'] = api_handler

    # 3. Formulation log (validation, cost allocation, lifecycle changes)
    formulation_handler = logging.handlers.RotatingFileHandler(
        LOGS_DIR / "formulation.log",
        maxBytes=20*1024*1024,  # 20MB
        backupCount=3
    )
    formulation_handler.setLevel(logging.DEBUG)
    formulation_handler.setFormatter(detailed_formatter)
    handlers['formulation'] = formulation_handler

    # 4. Database operations log
    db_handler = logging.handlers.RotatingFileHandler(
        LOGS_DIR / "database.log",
        maxBytes=5*1024*1024,  # 5MB
        backupCount=3
    )
    db_handler.setLevel(logging.INFO)
    db_handler.setFormatter(detailed_formatter)
    handlers['database'] = db_handler

    # 5. Error log (all errors from all modules)
    error_handler = logging.handlers.RotatingFileHandler(
        LOGS_DIR / "error.log",
        maxBytes=5*1024*1024,  # 5MB
        backupCount=5
    )
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(detailed_formatter)
    handlers['error'] = error_handler

    # 6. Console handler for development
    console_handler = logging.StreamHandler()
    console_handler.setLevel(LOG_LEVEL)
    console_handler.setFormatter(simple_formatter)
    handlers['console'] = console_handler

    return handlers

def get_logger(name, handlers=None):
    """Get a logger with the handlers matching its name"""
    if handlers is None:
        handlers = HANDLERS

    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)

    # Clear existing handlers to avoid duplicates
    logger.handlers.clear()

    lowered = name.lower()
    if 'api' in lowered or 'router' in lowered:
        logger.addHandler(handlers['api'])
    elif 'formulation' in lowered or 'cost' in lowered:
        logger.addHandler(handlers['formulation'])
    elif 'database' in lowered or 'catalog' in lowered or 'export' in lowered:
        logger.addHandler(handlers['database'])
    else:
        logger.addHandler(handlers['app'])
    logger.addHandler(handlers['error'])

    # Always add console handler for development
    logger.addHandler(handlers['console'])
    logger.propagate = False

    return logger

# Convenience functions for common logging patterns
def log_api_request(logger, method, endpoint, user_id=None, **kwargs):
    """Log API request details"""
    extra_info = f" | User: {user_id}" if user_id else ""
    logger.info(f"API Request: {method} {endpoint}{extra_info} | {kwargs}")

def log_api_response(logger, method, endpoint, status_code, response_time=None, **kwargs):
    """Log API response details"""
    timing = f" | Time: {response_time:.2f}ms" if response_time is not None else ""
    logger.info(f"API Response: {method} {endpoint} | Status: {status_code}{timing} | {kwargs}")

def log_database_operation(logger, operation, table, record_count=None, **kwargs):
    """Log database operations"""
    count_str = f" | Records: {record_count}" if record_count is not None else ""
    logger.info(f"Database {operation} | Table: {table}{count_str} | {kwargs}")

def log_error(logger, error, context=None):
    """Log errors with context"""
    context_str = f" | Context: {context}" if context else ""
    logger.error(f"Error: {str(error)}{context_str}", exc_info=True)

# Initialize logging when module is imported
HANDLERS = setup_logging()
