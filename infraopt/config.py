from __future__ import annotations

import datetime
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from types import MappingProxyType

import colorlog
from colorlog.escape_codes import escape_codes

__all__ = ['CONFIG', 'MultilineFormatter', 'ColoredMultilineFormatter', 'SUCCESS_LEVEL']

# Custom SUCCESS level (between INFO and WARNING)
SUCCESS_LEVEL = 25
logging.addLevelName(SUCCESS_LEVEL, 'SUCCESS')

_LOGGER_NAME = 'infraopt'
_TIME_WIDTH = 23  # YYYY-MM-DD HH:MM:SS.mmm


def _success(self, message, *args, **kwargs):
    """Log a message with severity 'SUCCESS'."""
    if self.isEnabledFor(SUCCESS_LEVEL):
        self._log(SUCCESS_LEVEL, message, args, **kwargs)


logging.Logger.success = _success


def _record_lines(formatter: logging.Formatter, record: logging.LogRecord) -> list[str]:
    lines = record.getMessage().split('\n')
    if record.exc_info:
        lines.extend(formatter.formatException(record.exc_info).split('\n'))
    if record.stack_info:
        lines.extend(record.stack_info.rstrip().split('\n'))
    return lines


def _record_time(record: logging.LogRecord) -> str:
    # formatTime doesn't support %f
    return datetime.datetime.fromtimestamp(record.created).strftime('%Y-%m-%d %H:%M:%S.%f')[:-3]


class MultilineFormatter(logging.Formatter):
    """Formatter that prints multi-line messages inside a box-style border."""

    def format(self, record):
        lines = _record_lines(self, record)
        time_str = _record_time(record)
        level_str = f'{record.levelname: <8}'

        if len(lines) == 1:
            return f'{time_str} {level_str} │ {lines[0]}'

        result = f'{time_str} {level_str} │ ┌─ {lines[0]}'
        indent = ' ' * _TIME_WIDTH
        for line in lines[1:-1]:
            result += f'\n{indent} {" " * 8} │ │  {line}'
        result += f'\n{indent} {" " * 8} │ └─ {lines[-1]}'
        return result


class ColoredMultilineFormatter(colorlog.ColoredFormatter):
    """Colored formatter with multi-line message support."""

    def format(self, record):
        lines = _record_lines(self, record)
        dim = escape_codes['thin']
        reset = escape_codes['reset']
        time_formatted = f'{dim}{_record_time(record)}{reset}'

        color = escape_codes.get(self.log_colors.get(record.levelname, ''), '')
        level_str = f'{record.levelname: <8}'

        if len(lines) == 1:
            return f'{time_formatted} {color}{level_str}{reset} │ {lines[0]}'

        result = f'{time_formatted} {color}{level_str}{reset} │ {color}┌─ {lines[0]}{reset}'
        indent = ' ' * _TIME_WIDTH
        for line in lines[1:-1]:
            result += f'\n{dim}{indent}{reset} {" " * 8} │ {color}│  {line}{reset}'
        result += f'\n{dim}{indent}{reset} {" " * 8} │ {color}└─ {lines[-1]}{reset}'
        return result


_DEFAULT_LOG_COLORS = MappingProxyType(
    {
        'DEBUG': 'cyan',
        'INFO': '',
        'SUCCESS': 'green',
        'WARNING': 'yellow',
        'ERROR': 'red',
        'CRITICAL': 'bold_red',
    }
)

# SINGLE SOURCE OF TRUTH - immutable to prevent accidental modification
_DEFAULTS = MappingProxyType(
    {
        'config_name': 'infraopt',
        'modeling': MappingProxyType(
            {
                'big': 10_000_000,
                'epsilon': 1e-5,
                'cost_epsilon': 1e-4,
            }
        ),
        'solving': MappingProxyType(
            {
                'mip_gap': 0.01,
                'time_limit_seconds': 300,
                'log_to_console': True,
            }
        ),
    }
)


def _to_level(level: str | int) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), None) or logging.getLevelName(level.upper())
    return level


class CONFIG:
    """Configuration for the infraopt library.

    Attributes:
        Logging: Logging configuration (see CONFIG.Logging for details).
        Modeling: Numerical modeling parameters.
        Solving: Default solver parameters.
        config_name: Configuration name.

    Examples:
        ```python
        CONFIG.Logging.enable_console('INFO')
        CONFIG.Solving.mip_gap = 0.001
        CONFIG.debug()  # Verbose output for troubleshooting
        CONFIG.reset()  # Back to silent defaults
        ```
    """

    class Logging:
        """Logging configuration helpers.

        infraopt is silent by default (WARNING level, no handlers).

        Methods:
            - ``enable_console(level='INFO', colored=True, stream=None)``
            - ``enable_file(level='INFO', path='infraopt.log', max_bytes=10MB, backup_count=5)``
            - ``disable()`` - Remove all handlers
            - ``set_colors(log_colors)`` - Customize level colors
        """

        @classmethod
        def enable_console(cls, level: str | int = 'INFO', colored: bool = True, stream=None) -> None:
            """Enable console logging.

            Args:
                level: Log level (DEBUG, INFO, SUCCESS, WARNING, ERROR, CRITICAL or logging constant)
                colored: Use colorlog for colored output (default: True)
                stream: Output stream (default: sys.stdout).
            """
            logger = logging.getLogger(_LOGGER_NAME)
            logger.setLevel(_to_level(level))

            if stream is None:
                stream = sys.stdout

            # Remove existing console handlers to avoid duplicates
            logger.handlers = [
                h for h in logger.handlers if not isinstance(h, logging.StreamHandler) or isinstance(h, logging.FileHandler)
            ]

            if colored:
                handler = colorlog.StreamHandler(stream)
                handler.setFormatter(
                    ColoredMultilineFormatter(
                        '%(log_color)s%(levelname)-8s%(reset)s %(message)s',
                        log_colors=dict(_DEFAULT_LOG_COLORS),
                    )
                )
            else:
                handler = logging.StreamHandler(stream)
                handler.setFormatter(MultilineFormatter('%(levelname)-8s %(message)s'))

            logger.addHandler(handler)
            logger.propagate = False

        @classmethod
        def enable_file(
            cls,
            level: str | int = 'INFO',
            path: str | Path = 'infraopt.log',
            max_bytes: int = 10 * 1024 * 1024,
            backup_count: int = 5,
        ) -> None:
            """Enable file logging with rotation.

            Args:
                level: Log level (DEBUG, INFO, SUCCESS, WARNING, ERROR, CRITICAL or logging constant)
                path: Path to log file (default: 'infraopt.log')
                max_bytes: Maximum file size before rotation in bytes (default: 10MB)
                backup_count: Number of backup files to keep (default: 5)
            """
            logger = logging.getLogger(_LOGGER_NAME)
            logger.setLevel(_to_level(level))

            # Remove existing file handlers to avoid duplicates
            logger.handlers = [h for h in logger.handlers if not isinstance(h, logging.FileHandler)]

            log_path = Path(path)
            log_path.parent.mkdir(parents=True, exist_ok=True)

            handler = RotatingFileHandler(log_path, maxBytes=max_bytes, backupCount=backup_count)
            handler.setFormatter(MultilineFormatter())

            logger.addHandler(handler)
            logger.propagate = False

        @classmethod
        def disable(cls) -> None:
            """Disable all infraopt logging."""
            logger = logging.getLogger(_LOGGER_NAME)
            for handler in logger.handlers:
                handler.close()
            logger.handlers.clear()
            logger.addHandler(logging.NullHandler())
            logger.setLevel(logging.WARNING)
            logger.propagate = True

        @classmethod
        def set_colors(cls, log_colors: dict[str, str]) -> None:
            """Customize log level colors of the current colored console handler.

            Args:
                log_colors: Dictionary mapping log levels to colorlog color names
                    (e.g. ``{'WARNING': 'bold_yellow', 'CRITICAL': 'bold_white,bg_red'}``).

            Raises:
                RuntimeError: If no colored console handler is active.
            """
            logger = logging.getLogger(_LOGGER_NAME)
            for handler in logger.handlers:
                if isinstance(handler.formatter, ColoredMultilineFormatter):
                    handler.formatter.log_colors = log_colors
                    return
            raise RuntimeError(
                'No ColoredMultilineFormatter found. Call CONFIG.Logging.enable_console() with colored=True first.'
            )

    class Modeling:
        """Numerical modeling parameters.

        Attributes:
            big: Largest coefficient magnitude accepted by the numerical bounds check.
            epsilon: Smallest nonzero coefficient magnitude accepted by the numerical bounds check.
            cost_epsilon: Offset added to an extrapolated zero intercept of a piecewise cost curve.
        """

        big: int = _DEFAULTS['modeling']['big']
        epsilon: float = _DEFAULTS['modeling']['epsilon']
        cost_epsilon: float = _DEFAULTS['modeling']['cost_epsilon']

    class Solving:
        """Default solver parameters.

        Attributes:
            mip_gap: Default MIP gap tolerance for solver convergence.
            time_limit_seconds: Default time limit in seconds for solver runs.
            log_to_console: Whether the solver should print its log to the console.
        """

        mip_gap: float = _DEFAULTS['solving']['mip_gap']
        time_limit_seconds: int = _DEFAULTS['solving']['time_limit_seconds']
        log_to_console: bool = _DEFAULTS['solving']['log_to_console']

    config_name: str = _DEFAULTS['config_name']

    @classmethod
    def reset(cls) -> None:
        """Reset all configuration values to defaults and silence logging."""
        for key, value in _DEFAULTS['modeling'].items():
            setattr(cls.Modeling, key, value)

        for key, value in _DEFAULTS['solving'].items():
            setattr(cls.Solving, key, value)

        cls.config_name = _DEFAULTS['config_name']
        cls.Logging.disable()

    @classmethod
    def to_dict(cls) -> dict:
        """Convert the configuration into a dictionary for JSON/YAML serialization."""
        return {
            'config_name': cls.config_name,
            'modeling': {key: getattr(cls.Modeling, key) for key in _DEFAULTS['modeling']},
            'solving': {key: getattr(cls.Solving, key) for key in _DEFAULTS['solving']},
        }

    @classmethod
    def silent(cls) -> type[CONFIG]:
        """Disable all logging and solver output."""
        cls.Logging.disable()
        cls.Solving.log_to_console = False
        return cls

    @classmethod
    def debug(cls) -> type[CONFIG]:
        """Enable DEBUG console logging and solver output."""
        cls.Logging.enable_console('DEBUG')
        cls.Solving.log_to_console = True
        return cls

    @classmethod
    def production(cls, log_file: str | Path = 'infraopt.log') -> type[CONFIG]:
        """Log to a rotating file only and silence the solver.

        Args:
            log_file: Path to log file (default: 'infraopt.log')
        """
        cls.Logging.disable()
        cls.Logging.enable_file('INFO', log_file)
        cls.Solving.log_to_console = False
        return cls
