#!/usr/bin/env python3
# -*- coding: utf-8 -*-
import json
import logging
import re
import sys

import yaml


DEFAULT_NATS_URL = "nats://localhost:4222"
LOG_FORMAT = '[%(asctime).19s] [%(name)s] [%(levelname)s] %(message)s'
INT_TAG = 'tag:yaml.org,2002:int'


class RobustFileHandler(logging.FileHandler):
    """FileHandler that gracefully handles flush errors on Windows"""

    def flush(self):
        """Flush the stream, catching OSError on Windows file handles"""
        try:
            super().flush()
        except OSError as e:
            # EINVAL from a Windows handle in an inconsistent state
            if e.errno != 22:
                raise


class ConfigLoader(yaml.SafeLoader):
    """SafeLoader without YAML 1.1 base-60 integers

    An unquoted ``time: 12:30:00`` stays the string "12:30:00" instead of
    the integer 45000.
    """


ConfigLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != INT_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
ConfigLoader.add_implicit_resolver(
    INT_TAG,
    re.compile(r'''^(?:[-+]?0b[0-1_]+
                |[-+]?0[0-7_]+
                |[-+]?(?:0|[1-9][0-9_]*)
                |[-+]?0x[0-9a-fA-F_]+)$''', re.X),
    list('-+0123456789'))


def configure_logger(logger,
                     log_file=None,
                     log_format=None,
                     log_level=logging.INFO):
    """Configure a logger with a file or stream handler

    Args:
        logger: Logger instance or logger name string
        log_file: File path string or file-like object (None for stderr)
        log_format: Format string for log messages
        log_level: Logging level (e.g., logging.INFO, logging.DEBUG)

    Returns:
        Configured logger instance
    """
    if isinstance(log_file, str):
        handler = RobustFileHandler(
            log_file,
            mode='a',
            encoding='utf-8',
            errors='replace'
        )
    else:
        handler = logging.StreamHandler(log_file)  # Default to stderr if None

    formatter = logging.Formatter(log_format)

    if isinstance(logger, str):
        logger = logging.getLogger(logger)

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(log_level)

    return logger


def load_config(config_file):
    """Load a JSON or YAML configuration file

    Args:
        config_file: Path to the file; .yaml/.yml is read as YAML,
                     anything else as JSON

    Returns:
        Configuration dictionary
    """
    with open(config_file, 'r', encoding='utf-8') as fp:
        if config_file.endswith(('.yaml', '.yml')):
            conf = yaml.load(fp, Loader=ConfigLoader)
        else:
            conf = json.load(fp)
    return conf or {}


def get_config(argv=None):
    """Load and parse configuration from the file named on the command line

    Returns:
        Tuple of (conf, plugin_conf) where:
            conf: Full configuration dictionary from config file
            plugin_conf: The "autoshutdown" section

    Exits:
        Exits with status 1 on wrong arguments or an unreadable file
    """
    argv = sys.argv if argv is None else argv
    if len(argv) != 2:
        print('usage: %s <config file>' % argv[0], file=sys.stderr)
        sys.exit(1)

    config_file = argv[1]
    try:
        conf = load_config(config_file)
    except (OSError, ValueError, yaml.YAMLError) as e:
        print('ERROR: cannot read config file %s: %s' % (config_file, e),
              file=sys.stderr)
        sys.exit(1)

    logging_config = conf.get('logging', {})
    log_level_str = logging_config.get('level', conf.get('log_level', 'info'))
    log_level = getattr(logging, str(log_level_str).upper(), logging.INFO)

    logging.basicConfig(level=log_level, format=LOG_FORMAT)

    log_file = logging_config.get('file')
    if log_file:
        configure_logger(logging.getLogger(), log_file, LOG_FORMAT, log_level)

    return conf, conf.get('autoshutdown', {})


def get_nats_url(conf):
    """NATS server URL from the "nats" section (default localhost)"""
    nats_conf = conf.get('nats', {})
    if isinstance(nats_conf, str):
        return nats_conf
    return nats_conf.get('url', conf.get('nats_url', DEFAULT_NATS_URL))
