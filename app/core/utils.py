import logging
from datetime import datetime
from typing import Any, Dict, Optional, Union


LogMessage = Union[str, Dict[str, Any]]


class LoggerMixin:
    """
    Mixin adding structured logging helpers to a class.

    Messages may be plain strings or dictionaries of event fields; the logger
    is named after the class using the mixin.

    Example:
        class CardService(LoggerMixin):
            def activate(self):
                self.log_info({"event": "card_activated", "patient_id": "..."})
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._logger: Optional[logging.Logger] = None

    @property
    def logger(self) -> logging.Logger:
        """Lazy initialization of logger instance."""
        if self._logger is None:
            self._logger = logging.getLogger(self.__class__.__name__)
        return self._logger

    def _format_message(self, message: LogMessage) -> str:
        if isinstance(message, dict):
            return str(
                {
                    key: (value.isoformat() if isinstance(value, datetime) else value)
                    for key, value in message.items()
                }
            )
        return message

    def log_info(self, message: LogMessage, **kwargs) -> None:
        self.logger.info(self._format_message(message), **kwargs)

    def log_warning(self, message: LogMessage, **kwargs) -> None:
        self.logger.warning(self._format_message(message), **kwargs)

    def log_error(self, message: LogMessage, exc_info: bool = False, **kwargs) -> None:
        """
        Log an error level message.

        Args:
            message: Message to log (string or dict)
            exc_info: Include exception information if True
            **kwargs: Additional context to pass to logger
        """
        self.logger.error(self._format_message(message), exc_info=exc_info, **kwargs)

    def log_debug(self, message: LogMessage, **kwargs) -> None:
        self.logger.debug(self._format_message(message), **kwargs)

    def log_security_event(self, message: LogMessage, **kwargs) -> None:
        """
        Log a security-related event (login failures, denied access) at
        warning level with a 'SECURITY EVENT:' prefix for filtering.
        """
        self.logger.warning(f"SECURITY EVENT: {self._format_message(message)}", **kwargs)

    def log_card_event(self, message: LogMessage, **kwargs) -> None:
        """
        Log a card lifecycle change (registration, activation, suspension,
        sweep deactivation) at info level with a 'CARD EVENT:' prefix so the
        billing trail can be filtered out of the application log.
        """
        self.logger.info(f"CARD EVENT: {self._format_message(message)}", **kwargs)


class _ModuleLevelLogger(LoggerMixin):
    """Module-level logger instance that uses a fixed name."""

    def __init__(self):
        self._logger = logging.getLogger("app.logger")


logger = _ModuleLevelLogger()
