import json
import os
from unittest.mock import patch

import pytest

from icon_catalog import cli
from icon_catalog.config.settings import DatabaseConfig, get_pipeline_config
from icon_catalog.core.exceptions import ConfigurationError
from tests.conftest import FakeDatabase, make_record

PIPELINE_ENV_VARS = [
    "GOOGLE_API_KEY", "GEMINI_MODEL_NAME", "GEMINI_EMBEDDING_MODEL", "ICON_PROMPT_LANGUAGE",
    "ICON_ITEM_DELAY_MS", "ICONS_ROOT", "ICON_LIBRARY", "ICON_DATASET_PATH", "ICON_BATCH_SIZE",
    "ICON_BATCH_DELAY_MS", "ICON_TABLE_NAME", "ICON_VERIFY_EACH_RECORD", "POSTGRES_URL",
    "POSTGRES_USER", "POSTGRES_PASSWORD", "POSTGRES_DATABASE", "POSTGRES_HOST", "POSTGRES_PORT",
    "ICON_PIPELINE_CONFIG",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch, tmp_path):
    for name in PIPELINE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    # keep load_dotenv() away from any developer .env file
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def db_env(monkeypatch):
    monkeypatch.setenv("POSTGRES_URL", "postgres://localhost:5432/icons")
    monkeypatch.setenv("POSTGRES_USER", "icons")
    monkeypatch.setenv("POSTGRES_PASSWORD", "secret")
    monkeypatch.setenv("POSTGRES_DATABASE", "icons")


def test_defaults():
    config = get_pipeline_config()

    assert config.paths.library == "default"
    assert config.paths.library_dir == os.path.join("./icons", "default")
    assert config.paths.dataset_path == os.path.join("./icons", "dataset.json")
    assert config.loader.batch_size == 250
    assert config.loader.batch_delay_seconds == 0.25
    assert config.generation.item_delay_seconds == 1.0
    assert config.generation.temperature == 0.0
    assert config.generation.language == "English"


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("ICON_LIBRARY", "lucide")
    monkeypatch.setenv("ICONS_ROOT", "/data/icons")
    monkeypatch.setenv("ICON_BATCH_SIZE", "50")
    monkeypatch.setenv("ICON_BATCH_DELAY_MS", "1000")
    monkeypatch.setenv("ICON_VERIFY_EACH_RECORD", "false")

    config = get_pipeline_config()

    assert config.paths.library_dir == os.path.join("/data/icons", "lucide")
    assert config.paths.dataset_path == os.path.join("/data/icons", "dataset.json")
    assert config.loader.batch_size == 50
    assert config.loader.batch_delay_seconds == 1.0
    assert config.loader.verify_each_record is False


def test_yaml_overrides(tmp_path):
    config_file = tmp_path / "pipeline.yaml"
    config_file.write_text(
        "generation:\n  language: French\nloader:\n  batch_size: 10\npaths:\n  icons_root: /srv/icons\n",
        encoding="utf-8"
    )

    config = get_pipeline_config(str(config_file))

    assert config.generation.language == "French"
    assert config.loader.batch_size == 10
    assert config.paths.dataset_path == os.path.join("/srv/icons", "dataset.json")


def test_yaml_unknown_setting_is_rejected(tmp_path):
    config_file = tmp_path / "pipeline.yaml"
    config_file.write_text("loader:\n  batch_sise: 10\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="loader.batch_sise"):
        get_pipeline_config(str(config_file))


def test_database_config_reports_missing_variables():
    config = DatabaseConfig(url="postgres://x", password="p")

    assert config.missing_fields() == ["POSTGRES_USER", "POSTGRES_DATABASE"]
    with pytest.raises(ConfigurationError) as exc_info:
        config.require()
    assert exc_info.value.missing == ["POSTGRES_USER", "POSTGRES_DATABASE"]


def test_populate_without_database_settings_exits_1(tmp_path):
    assert cli.main(["populate", "--dataset", str(tmp_path / "dataset.json")]) == cli.EXIT_CONFIG_ERROR


def test_generate_without_api_key_exits_1(tmp_path):
    assert cli.main(["generate", "--icons-dir", str(tmp_path)]) == cli.EXIT_CONFIG_ERROR


def test_populate_loads_dataset(tmp_path, db_env):
    dataset = tmp_path / "dataset.json"
    dataset.write_text(json.dumps([make_record("a").to_dict()]), encoding="utf-8")
    db = FakeDatabase()

    with patch("icon_catalog.cli.psycopg_connection_factory", return_value=db.connect) as factory:
        exit_code = cli.main(["populate", "--dataset", str(dataset), "--delay-ms", "0"])

    assert exit_code == cli.EXIT_OK
    assert [p[0] for p in db.inserts] == ["a"]
    assert factory.call_args.kwargs["user"] == "icons"
    assert factory.call_args.kwargs["dbname"] == "icons"


def test_populate_with_unreachable_database_exits_2(tmp_path, db_env):
    dataset = tmp_path / "dataset.json"
    dataset.write_text(json.dumps([make_record("a").to_dict()]), encoding="utf-8")
    db = FakeDatabase(fail_connect=True)

    with patch("icon_catalog.cli.psycopg_connection_factory", return_value=db.connect):
        exit_code = cli.main(["populate", "--dataset", str(dataset), "--delay-ms", "0"])

    assert exit_code == cli.EXIT_RUN_FAILED
    assert db.insert_attempts == []


@pytest.mark.parametrize("batch_size", ["0", "-1"])
def test_populate_rejects_non_positive_batch_size(tmp_path, db_env, batch_size):
    dataset = tmp_path / "dataset.json"
    dataset.write_text(json.dumps([make_record("a").to_dict()]), encoding="utf-8")
    db = FakeDatabase()

    with patch("icon_catalog.cli.psycopg_connection_factory", return_value=db.connect):
        exit_code = cli.main(["populate", "--dataset", str(dataset), "--batch-size", batch_size])

    assert exit_code == cli.EXIT_CONFIG_ERROR
    assert db.connects == 0


def test_populate_rejects_negative_delay(tmp_path, db_env):
    dataset = tmp_path / "dataset.json"
    dataset.write_text("[]", encoding="utf-8")

    assert cli.main(["populate", "--dataset", str(dataset), "--delay-ms", "-5"]) == cli.EXIT_CONFIG_ERROR


@pytest.mark.parametrize("value", ["0", "-3", "many"])
def test_invalid_batch_size_environment_is_rejected(monkeypatch, value):
    monkeypatch.setenv("ICON_BATCH_SIZE", value)

    with pytest.raises(ConfigurationError, match="ICON_BATCH_SIZE|loader.batch_size"):
        get_pipeline_config()


def test_invalid_batch_size_in_yaml_is_rejected(tmp_path):
    config_file = tmp_path / "pipeline.yaml"
    config_file.write_text("loader:\n  batch_size: 0\n", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="loader.batch_size"):
        get_pipeline_config(str(config_file))


def test_populate_with_invalid_batch_size_environment_exits_1(tmp_path, db_env, monkeypatch):
    monkeypatch.setenv("ICON_BATCH_SIZE", "0")

    assert cli.main(["populate", "--dataset", str(tmp_path / "dataset.json")]) == cli.EXIT_CONFIG_ERROR
