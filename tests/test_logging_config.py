"""Tests for log masking and logger setup."""

import logging

import pytest

from common.logging_config import SensitiveDataFilter, setup_logging


def make_record(msg, args=None):
    return logging.LogRecord('transfer.client', logging.INFO, __file__, 1, msg, args, None)


@pytest.mark.parametrize(
    'message, secret',
    [
        ('Proxy-Authorization: Bearer abc.def.ghi', 'abc.def.ghi'),
        ('Authorization: Basic dXNlcjpwYXNz', 'dXNlcjpwYXNz'),
        ('password=hunter2', 'hunter2'),
        ("{'token': 'eyJhbGciOi'}", 'eyJhbGciOi'),
    ],
)
def test_secrets_are_masked(message, secret):
    record = make_record(message)

    assert SensitiveDataFilter().filter(record)
    assert secret not in record.msg
    assert '***MASKED***' in record.msg


def test_arguments_are_masked():
    record = make_record('header %s', ('Bearer abc',))

    SensitiveDataFilter().filter(record)

    assert record.args == ('Bearer ***MASKED***',)


def test_plain_message_untouched():
    record = make_record('Uploaded chunk 3 of sample.c4gh')

    SensitiveDataFilter().filter(record)

    assert record.msg == 'Uploaded chunk 3 of sample.c4gh'


def test_setup_logging_attaches_one_handler():
    packages = ('lega_test_pkg',)
    try:
        logger = setup_logging('lega_test_pkg', log_level='debug', packages=packages)
        setup_logging('lega_test_pkg', log_level='debug', packages=packages)

        assert logger.level == logging.DEBUG
        assert len(logger.handlers) == 1
        assert logger.propagate is False
        assert any(isinstance(f, SensitiveDataFilter) for f in logger.handlers[0].filters)
    finally:
        logging.getLogger('lega_test_pkg').handlers.clear()
