from config import DEFAULT_SECRET_KEY, Config, TestingConfig, validate_config


def test_testing_config_is_valid():
    assert validate_config(TestingConfig) == []


def test_validate_config_reports_problems():
    class BrokenConfig(Config):
        SCHOOL_ID = "a/b"
        CSV_IMPORT_MAX_ROWS = 0
        SCAN_SETTLE_DELAY_MS = -1
        DEBUG = False
        SECRET_KEY = DEFAULT_SECRET_KEY

    errors = validate_config(BrokenConfig)

    assert len(errors) == 4
