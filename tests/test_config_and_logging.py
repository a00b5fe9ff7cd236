import logging

import pytest

from packtrack.config import EnvReader, _normalize_db_url
from packtrack.logging_config import PiiRedactionFilter, _coerce_level


class TestEnvReader:

    def test_typed_accessors(self):
        reader = EnvReader({'A': ' 5 ', 'B': '0.25', 'C': 'yes', 'D': 'strict'})

        assert reader.int('A') == 5
        assert reader.float('B') == 0.25
        assert reader.bool('C') is True
        assert reader.choice('D', {'warn', 'strict'}, 'warn') == 'strict'
        assert reader.warnings == []

    def test_bad_values_fall_back_with_warning(self):
        reader = EnvReader({'A': 'lots', 'D': 'panic'})

        assert reader.int('A', 3) == 3
        assert reader.choice('D', {'warn', 'strict'}, 'warn') == 'warn'
        assert len(reader.warnings) == 2

    def test_postgres_url_is_normalized(self):
        assert _normalize_db_url('postgres://u:p@h/db') == 'postgresql://u:p@h/db'
        assert _normalize_db_url(None) is None


class TestLogging:

    def test_pii_is_redacted(self):
        record = logging.LogRecord('packtrack', logging.INFO, __file__, 1,
                                   'contact %s token=%s', ('buyer@example.com', 'abc123'), None)

        assert PiiRedactionFilter().filter(record)

        assert 'buyer@example.com' not in record.msg
        assert 'abc123' not in record.msg
        assert '[REDACTED_EMAIL]' in record.msg

    @pytest.mark.parametrize('raw,expected', [
        ('debug', logging.DEBUG),
        (logging.WARNING, logging.WARNING),
        ('nonsense', logging.INFO),
        (None, logging.INFO),
    ])
    def test_coerce_level(self, raw, expected):
        assert _coerce_level(raw) == expected


def test_app_config_defaults(app):
    assert app.config['COST_DIVERGENCE_THRESHOLD'] == 0.005
    assert app.config['RECIPE_COST_EPSILON'] == 0.0001
    assert app.config['BUSINESS_TIMEZONE'] == 'America/Sao_Paulo'
    assert app.config['TESTING'] is True
