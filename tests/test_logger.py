import logging
from datetime import date

from league_bot.utils.logger import PACKAGE_LOGGER, log_file_path, setup_logger


def test_module_loggers_share_package_handlers():
    first = setup_logger('league_bot.services.maintenance')
    second = setup_logger('league_bot.cogs.admin')
    setup_logger('league_bot.services.maintenance')

    package = logging.getLogger(PACKAGE_LOGGER)
    assert first.handlers == [] and second.handlers == []
    assert len(package.handlers) == 2
    assert first.getEffectiveLevel() == logging.DEBUG


def test_outside_names_nest_under_package():
    assert setup_logger('__main__').name == 'league_bot.__main__'
    assert setup_logger('league_bot').name == PACKAGE_LOGGER


def test_daily_file_name():
    assert log_file_path(date(2024, 5, 13)).name == 'league_bot_20240513.log'
