"""Tests for the config module."""

import io
import logging
import sys

import pytest

from infraopt.config import _DEFAULTS, CONFIG, SUCCESS_LEVEL, ColoredMultilineFormatter, MultilineFormatter

logger = logging.getLogger('infraopt')


# All tests in this class will run in the same worker to prevent issues with global config altering
@pytest.mark.xdist_group(name='config_tests')
class TestConfigModule:
    """Test the CONFIG class and logging setup."""

    def setup_method(self):
        """Reset CONFIG to defaults before each test."""
        CONFIG.reset()

    def teardown_method(self):
        """Clean up after each test to prevent state leakage."""
        CONFIG.reset()

    def test_config_defaults(self):
        """Test that CONFIG has correct default values."""
        assert CONFIG.Modeling.big == 10_000_000
        assert CONFIG.Modeling.epsilon == 1e-5
        assert CONFIG.Modeling.cost_epsilon == 1e-4
        assert CONFIG.Solving.mip_gap == 0.01
        assert CONFIG.Solving.time_limit_seconds == 300
        assert CONFIG.Solving.log_to_console is True
        assert CONFIG.config_name == 'infraopt'

    def test_silent_by_default(self, capfd):
        """The library logger has no output handlers after a reset."""
        logger.warning('test message')
        captured = capfd.readouterr()
        assert 'test message' not in captured.out
        assert 'test message' not in captured.err
        assert logger.level == logging.WARNING

    def test_enable_console_plain(self):
        """Plain console logging writes through the MultilineFormatter."""
        stream = io.StringIO()
        CONFIG.Logging.enable_console('DEBUG', colored=False, stream=stream)
        logger.debug('debug message 12345')
        assert 'debug message 12345' in stream.getvalue()
        assert 'DEBUG' in stream.getvalue()
        assert logger.propagate is False

    def test_enable_console_colored(self):
        stream = io.StringIO()
        CONFIG.Logging.enable_console('INFO', stream=stream)
        logger.info('colored message')
        assert 'colored message' in stream.getvalue()
        assert any(isinstance(h.formatter, ColoredMultilineFormatter) for h in logger.handlers)

    def test_enable_console_replaces_handler(self):
        """Enabling the console twice does not duplicate output."""
        stream = io.StringIO()
        CONFIG.Logging.enable_console('INFO', colored=False, stream=stream)
        CONFIG.Logging.enable_console('INFO', colored=False, stream=stream)
        logger.info('once')
        assert stream.getvalue().count('once') == 1

    def test_console_level_filters(self):
        stream = io.StringIO()
        CONFIG.Logging.enable_console('WARNING', colored=False, stream=stream)
        logger.info('hidden info')
        logger.warning('visible warning')
        assert 'hidden info' not in stream.getvalue()
        assert 'visible warning' in stream.getvalue()

    def test_success_level(self):
        """The custom SUCCESS level sits between INFO and WARNING."""
        assert logging.INFO < SUCCESS_LEVEL < logging.WARNING
        stream = io.StringIO()
        CONFIG.Logging.enable_console('SUCCESS', colored=False, stream=stream)
        logger.info('not shown')
        logger.success('solved')
        assert 'SUCCESS' in stream.getvalue()
        assert 'solved' in stream.getvalue()
        assert 'not shown' not in stream.getvalue()

    def test_multiline_formatting(self):
        stream = io.StringIO()
        CONFIG.Logging.enable_console('INFO', colored=False, stream=stream)
        logger.info('first line\nsecond line\nthird line')
        output = stream.getvalue()
        assert '┌─ first line' in output
        assert '│  second line' in output
        assert '└─ third line' in output

    def test_enable_file(self, tmp_path):
        log_file = tmp_path / 'logs' / 'infraopt.log'
        CONFIG.Logging.enable_file('INFO', log_file)
        logger.info('file message')
        for handler in logger.handlers:
            handler.flush()
        assert log_file.exists()
        assert 'file message' in log_file.read_text(encoding='utf-8')

    def test_disable(self):
        stream = io.StringIO()
        CONFIG.Logging.enable_console('DEBUG', colored=False, stream=stream)
        CONFIG.Logging.disable()
        logger.warning('after disable')
        assert 'after disable' not in stream.getvalue()
        assert all(isinstance(h, logging.NullHandler) for h in logger.handlers)

    def test_set_colors(self):
        CONFIG.Logging.enable_console('INFO', stream=io.StringIO())
        CONFIG.Logging.set_colors({'INFO': 'bold_white'})
        formatter = next(
            h.formatter for h in logger.handlers if isinstance(h.formatter, ColoredMultilineFormatter)
        )
        assert formatter.log_colors == {'INFO': 'bold_white'}

    def test_set_colors_without_colored_handler(self):
        CONFIG.Logging.enable_console('INFO', colored=False, stream=io.StringIO())
        with pytest.raises(RuntimeError, match='ColoredMultilineFormatter'):
            CONFIG.Logging.set_colors({'INFO': 'bold_white'})

    def test_reset(self):
        CONFIG.Modeling.big = 1
        CONFIG.Solving.mip_gap = 0.5
        CONFIG.config_name = 'changed'
        CONFIG.reset()
        assert CONFIG.Modeling.big == _DEFAULTS['modeling']['big']
        assert CONFIG.Solving.mip_gap == _DEFAULTS['solving']['mip_gap']
        assert CONFIG.config_name == 'infraopt'

    def test_to_dict(self):
        CONFIG.Solving.time_limit_seconds = 60
        config_dict = CONFIG.to_dict()
        assert config_dict['config_name'] == 'infraopt'
        assert config_dict['modeling'] == {'big': 10_000_000, 'epsilon': 1e-5, 'cost_epsilon': 1e-4}
        assert config_dict['solving']['time_limit_seconds'] == 60

    def test_defaults_are_immutable(self):
        with pytest.raises(TypeError):
            _DEFAULTS['config_name'] = 'other'

    def test_silent_preset(self):
        CONFIG.debug()
        assert CONFIG.silent() is CONFIG
        assert CONFIG.Solving.log_to_console is False
        assert logger.level == logging.WARNING

    def test_debug_preset(self):
        CONFIG.debug()
        assert logger.level == logging.DEBUG
        assert CONFIG.Solving.log_to_console is True

    def test_production_preset(self, tmp_path):
        log_file = tmp_path / 'production.log'
        CONFIG.production(log_file)
        assert CONFIG.Solving.log_to_console is False
        assert any(isinstance(h, logging.FileHandler) for h in logger.handlers)
        assert not any(
            isinstance(h, logging.StreamHandler) and not isinstance(h, logging.FileHandler) for h in logger.handlers
        )


class TestFormatters:
    """The formatters on their own."""

    def _record(self, message):
        return logging.LogRecord('infraopt', logging.INFO, __file__, 1, message, None, None)

    def test_single_line(self):
        formatted = MultilineFormatter().format(self._record('hello'))
        assert formatted.endswith('│ hello')
        assert 'INFO' in formatted

    def test_exception_is_appended(self):
        try:
            raise ValueError('boom')
        except ValueError:
            record = logging.LogRecord('infraopt', logging.ERROR, __file__, 1, 'failed', None, sys.exc_info())
        formatted = MultilineFormatter().format(record)
        assert '┌─ failed' in formatted
        assert 'ValueError: boom' in formatted
