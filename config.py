#!/usr/bin/env python3
"""
SQL Reducer Configuration Management

This module provides configuration management with:
- Oracle (test script) settings
- Reduction stage control
- Logging options
- Result reporting locations
"""

import os
import yaml
import logging
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field, asdict

# Logging setup
logger = logging.getLogger(__name__)

TRUTHY_VALUES = ('1', 'true', 'yes', 'on')


@dataclass
class OracleConfig:
    """Settings of the external test script that judges candidates."""
    test_script: Optional[str] = None
    query_path: str = field(default_factory=lambda: os.path.join(os.getcwd(), "query.sql"))
    candidate_argument: str = "path"
    timeout: Optional[float] = None
    kill_process_tree: bool = True

    def validate(self) -> List[str]:
        """Validate oracle configuration."""
        errors = []

        if not self.query_path:
            errors.append("Candidate query path is required")
        if self.candidate_argument not in ("path", "text"):
            errors.append("Candidate argument must be 'path' or 'text'")
        if self.timeout is not None and self.timeout <= 0:
            errors.append("Oracle timeout must be positive")
        if self.test_script and not os.path.isfile(self.test_script):
            errors.append(f"Test script not found: {self.test_script}")

        return errors


@dataclass
class ReductionConfig:
    """Which reduction stages run and how they start."""
    quick: bool = False
    initial_granularity: int = 2
    enable_statement_reduction: bool = True
    enable_table_reduction: bool = True
    enable_unnest: bool = True
    enable_token_reduction: bool = True
    enable_transforms: bool = True
    transform_passes: List[str] = field(default_factory=lambda: ["ConstantFold"])
    verify_original: bool = True
    sql_dialect: Optional[str] = None

    def validate(self) -> List[str]:
        """Validate reduction configuration."""
        errors = []

        if self.initial_granularity < 2:
            errors.append("Initial granularity must be at least 2")
        if not isinstance(self.transform_passes, list):
            errors.append("Transform passes must be a list")
        else:
            from core import TRANSFORM_REGISTRY
            for name in self.transform_passes:
                if name not in TRANSFORM_REGISTRY:
                    errors.append(f"Unknown transform pass: {name}")

        return errors


@dataclass
class LoggingConfig:
    """Logging configuration."""
    log_level: str = "INFO"
    log_dir: str = "logs"
    log_file: str = "logs/reducer.log"
    error_log_file: str = "logs/reducer_errors.log"

    def validate(self) -> List[str]:
        """Validate logging configuration."""
        errors = []

        valid_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        if self.log_level.upper() not in valid_levels:
            errors.append(f"Invalid log level: {self.log_level}")

        return errors


@dataclass
class ReportingConfig:
    """Where reduction results are written."""
    output_dir: str = "results"
    stats_file: str = "stats.csv"
    reduced_file: str = "reduced.sql"
    write_metadata: bool = True

    def validate(self) -> List[str]:
        errors = []

        if not self.output_dir:
            errors.append("Output directory is required")
        if not self.stats_file:
            errors.append("Statistics file name is required")
        if not self.reduced_file:
            errors.append("Reduced script file name is required")

        return errors


@dataclass
class ReducerConfig:
    """Complete reducer configuration."""
    oracle: OracleConfig = field(default_factory=OracleConfig)
    reduction: ReductionConfig = field(default_factory=ReductionConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    reporting: ReportingConfig = field(default_factory=ReportingConfig)

    # Global settings
    debug: bool = False

    def validate(self) -> List[str]:
        """Validate complete configuration."""
        errors = []

        errors.extend(self.oracle.validate())
        errors.extend(self.reduction.validate())
        errors.extend(self.logging.validate())
        errors.extend(self.reporting.validate())

        return errors

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return asdict(self)


def default_config() -> Dict[str, Any]:
    """Returns the default configuration with environment overrides applied."""
    return _apply_env_overrides(ReducerConfig().to_dict())


def load_config(config_path: str) -> Dict[str, Any]:
    """
    Load configuration from YAML file, filling in defaults.

    Args:
        config_path: Path to configuration file

    Returns:
        Configuration dictionary
    """
    try:
        with open(config_path, 'r', encoding='utf-8') as f:
            config_data = yaml.safe_load(f)

        if not config_data:
            raise ValueError("Configuration file is empty")

        config_data = _apply_defaults(config_data)
        config_data = _apply_env_overrides(config_data)

        logger.info(f"Configuration loaded from '{config_path}'")
        return config_data

    except FileNotFoundError:
        logger.error(f"Configuration file not found: {config_path}")
        raise
    except yaml.YAMLError as e:
        logger.error(f"Invalid YAML in configuration file: {e}")
        raise


def _apply_defaults(config: Dict[str, Any]) -> Dict[str, Any]:
    """Fills every missing section and key from the dataclass defaults."""
    defaults = ReducerConfig().to_dict()
    for key, value in defaults.items():
        if isinstance(value, dict):
            section = config.get(key) or {}
            for nested_key, nested_value in value.items():
                section.setdefault(nested_key, nested_value)
            config[key] = section
        else:
            config.setdefault(key, value)
    return config


def _apply_env_overrides(config: Dict[str, Any]) -> Dict[str, Any]:
    """Applies the REDUCER_* environment variables."""
    query_path = os.environ.get('REDUCER_QUERY_PATH')
    if query_path:
        config['oracle']['query_path'] = query_path
        logger.debug(f"Candidate path overridden by environment: {query_path}")

    quick = os.environ.get('REDUCER_QUICK')
    if quick is not None:
        config['reduction']['quick'] = quick.strip().lower() in TRUTHY_VALUES

    timeout = os.environ.get('REDUCER_TIMEOUT')
    if timeout:
        try:
            config['oracle']['timeout'] = float(timeout)
        except ValueError:
            logger.warning(f"Ignoring invalid REDUCER_TIMEOUT value: {timeout}")

    return config


def validate_config(config: Dict[str, Any]) -> bool:
    """
    Validate complete configuration.

    Args:
        config: Configuration dictionary

    Returns:
        True if valid, False otherwise
    """
    reducer_config = ReducerConfig()

    # Update with loaded config
    for key, value in config.items():
        if hasattr(reducer_config, key):
            if isinstance(value, dict) and hasattr(getattr(reducer_config, key), '__dict__'):
                nested_obj = getattr(reducer_config, key)
                for nested_key, nested_value in value.items():
                    if hasattr(nested_obj, nested_key):
                        setattr(nested_obj, nested_key, nested_value)
            else:
                setattr(reducer_config, key, value)

    errors = reducer_config.validate()

    if errors:
        logger.error("Configuration validation failed:")
        for error in errors:
            logger.error(f"  - {error}")
        return False

    logger.debug("Configuration validation completed successfully")
    return True


def create_default_config(config_path: str) -> None:
    """
    Create a default configuration file.

    Args:
        config_path: Path where to create the configuration file
    """
    config_dict = ReducerConfig().to_dict()

    with open(config_path, 'w', encoding='utf-8') as f:
        yaml.dump(config_dict, f, default_flow_style=False, indent=2, sort_keys=False)

    logger.info(f"Default configuration created at: {config_path}")
