#!/usr/bin/env python3
# -*- coding: utf-8 -*-

import logging

import pytest

from common.config import (
    DEFAULT_NATS_URL, configure_logger, get_config, get_nats_url, load_config
)
from plugins.autoshutdown.errors import ConfigParseError
from plugins.autoshutdown.settings import load_settings


class TestLoadConfig:

    def test_json(self, write_config, sample_conf):
        path = write_config(sample_conf)
        assert load_config(path) == sample_conf

    @pytest.mark.parametrize("name", ["config.yaml", "config.yml"])
    def test_yaml(self, write_config, sample_conf, name):
        path = write_config(sample_conf, name)
        assert load_config(path) == sample_conf

    def test_empty_yaml_is_empty_dict(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(str(path)) == {}

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            load_config(str(tmp_path / "missing.json"))

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError):
            load_config(str(path))


class TestYamlTimeValues:

    @pytest.mark.parametrize("raw,expected", [
        ("12:30:00", "12:30:00"),
        ("4:00:00", "4:00:00"),
        ("04:00:00", "04:00:00"),
        ("23:59:59", "23:59:59"),
    ])
    def test_unquoted_time_stays_string(self, tmp_path, raw, expected):
        path = tmp_path / "config.yaml"
        path.write_text(
            "autoshutdown:\n"
            "  enabled: true\n"
            f"  time: {raw}\n"
            "  every_days: 3\n"
            "  pre_announce:\n"
            "    seconds: 0x258\n",
            encoding="utf-8"
        )

        section = load_config(str(path))["autoshutdown"]

        assert section["time"] == expected
        assert section["every_days"] == 3
        assert section["pre_announce"]["seconds"] == 600
        assert section["enabled"] is True

    def test_unquoted_time_loads_settings(self, tmp_path):
        path = tmp_path / "config.yml"
        path.write_text(
            "autoshutdown:\n  enabled: true\n  time: 12:30:00\n",
            encoding="utf-8"
        )

        settings = load_settings(load_config(str(path))["autoshutdown"])

        assert (settings.hour, settings.minute, settings.second) == (12, 30, 0)

    def test_two_part_time_is_rejected(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text(
            "autoshutdown:\n  enabled: true\n  time: 12:30\n",
            encoding="utf-8"
        )

        with pytest.raises(ConfigParseError):
            load_settings(load_config(str(path))["autoshutdown"])


class TestGetConfig:

    def test_returns_conf_and_section(self, write_config, sample_conf):
        path = write_config(sample_conf)
        conf, section = get_config(["autoshutdown.py", path])

        assert conf == sample_conf
        assert section == sample_conf["autoshutdown"]

    def test_missing_section(self, write_config):
        path = write_config({"nats": "nats://x:4222"})
        _, section = get_config(["autoshutdown.py", path])
        assert section == {}

    @pytest.mark.parametrize("argv", [
        ["autoshutdown.py"],
        ["autoshutdown.py", "a.json", "b.json"],
    ])
    def test_wrong_arguments_exit(self, argv, capsys):
        with pytest.raises(SystemExit) as exc:
            get_config(argv)

        assert exc.value.code == 1
        assert "usage" in capsys.readouterr().err

    def test_unreadable_file_exits(self, tmp_path, capsys):
        with pytest.raises(SystemExit) as exc:
            get_config(["autoshutdown.py", str(tmp_path / "missing.json")])

        assert exc.value.code == 1
        assert "cannot read config file" in capsys.readouterr().err


class TestGetNatsUrl:

    def test_default(self):
        assert get_nats_url({}) == DEFAULT_NATS_URL

    def test_section_dict(self):
        assert get_nats_url({"nats": {"url": "nats://a:1"}}) == "nats://a:1"

    def test_section_string(self):
        assert get_nats_url({"nats": "nats://b:2"}) == "nats://b:2"

    def test_flat_key(self):
        assert get_nats_url({"nats_url": "nats://c:3"}) == "nats://c:3"


class TestConfigureLogger:

    def test_file_handler(self, tmp_path):
        log_file = tmp_path / "autoshutdown.log"
        logger = configure_logger(
            "test.autoshutdown.file", str(log_file), "%(message)s", logging.DEBUG
        )
        try:
            logger.info("hello")
            for handler in logger.handlers:
                handler.flush()

            assert logger.level == logging.DEBUG
            assert "hello" in log_file.read_text(encoding="utf-8")
        finally:
            for handler in list(logger.handlers):
                handler.close()
                logger.removeHandler(handler)
