#!/usr/bin/env python3
"""
SQL Reducer - Delta Debugging Test Case Reducer for SQL Scripts

This module provides the main entry point for the reducer.
Features:
- Statement, table and token granularity reduction
- External test script oracle
- Parse-only inspection mode
- Statistics and reduced script reporting
"""

import argparse
import logging
import signal
import sys
import traceback
from pathlib import Path
from typing import Optional, Dict, Any

import sqlglot
from sqlglot.errors import SqlglotError

from config import default_config, load_config, validate_config
from core.constant_fold import ConstantFold
from core.parser import parse_statements, split_statements
from oracles.base_oracle import OracleError
from oracles.script_oracle import ScriptOracle
from reducer.pipeline import ReductionError, ReductionPipeline
from utils.result_reporter import ResultReporter

# Global variables for signal handling
active_oracle: Optional[ScriptOracle] = None


def setup_logging(config: Dict[str, Any]) -> logging.Logger:
    """
    Setup logging with console, detailed file and error file handlers.

    Args:
        config: Configuration dictionary

    Returns:
        Configured logger instance
    """
    log_config = config.get('logging', {})
    log_dir = Path(log_config.get('log_dir', 'logs'))
    log_dir.mkdir(parents=True, exist_ok=True)

    # Configure root logger
    logger = logging.getLogger()
    logger.setLevel(logging.DEBUG if config.get('debug', False) else logging.INFO)

    # Clear existing handlers
    logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(getattr(logging, log_config.get('log_level', 'INFO').upper(), logging.INFO))
    console_formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - [%(name)s] - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    console_handler.setFormatter(console_formatter)

    # File handler for comprehensive logging
    log_file = log_config.get('log_file', 'logs/reducer.log')
    Path(log_file).parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_file, mode='w', encoding='utf-8')
    file_handler.setLevel(logging.DEBUG)

    file_formatter = logging.Formatter(
        '%(asctime)s - %(levelname)s - [%(name)s] - %(funcName)s:%(lineno)d - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    file_handler.setFormatter(file_formatter)

    # Error file handler for failed reductions
    error_log_file = log_config.get('error_log_file', 'logs/reducer_errors.log')
    Path(error_log_file).parent.mkdir(parents=True, exist_ok=True)
    error_handler = logging.FileHandler(error_log_file, mode='w', encoding='utf-8')
    error_handler.setLevel(logging.ERROR)
    error_handler.setFormatter(file_formatter)

    logger.addHandler(console_handler)
    logger.addHandler(file_handler)
    logger.addHandler(error_handler)

    return logger


def signal_handler(signum: int, frame) -> None:
    """
    Handle shutdown signals.

    Args:
        signum: Signal number
        frame: Current stack frame
    """
    signal_name = signal.Signals(signum).name
    logging.getLogger(__name__).warning(f"Received signal {signal_name}, aborting reduction")
    if active_oracle is not None:
        logging.getLogger(__name__).info(
            f"Last candidate left at {active_oracle.query_path} after {active_oracle.checks} checks"
        )
    sys.exit(1)


def inspect_script(path: str, dialect: Optional[str] = None) -> int:
    """
    Parse-only mode: logs the kind and constant-folded form of every statement.

    Returns:
        0 if every statement parses with sqlglot, 1 otherwise
    """
    logger = logging.getLogger(__name__)
    with open(path, 'r', encoding='utf-8') as f:
        statements = split_statements(f.read())

    folder = ConstantFold(dialect=dialect)
    failures = 0
    for index, statement in enumerate(parse_statements(statements)):
        logger.info(f"[{index}] {statement.kind.value}: {statement.original}")
        try:
            sqlglot.parse_one(statement.original, read=dialect)
        except SqlglotError as e:
            logger.error(f"[{index}] does not parse: {e}")
            failures += 1
            continue
        logger.info(f"[{index}] folded: {folder.apply(statement.original)}")

    logger.info(f"Parsed {len(statements)} statements, {failures} failed")
    return 1 if failures else 0


def main() -> int:
    """
    Main entry point for the reducer.

    Returns:
        Exit code (0 for success, non-zero for failure)
    """
    global active_oracle

    parser = argparse.ArgumentParser(
        description="SQL Reducer - Minimizes a SQL script while it keeps reproducing a behavior",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Reduce a crashing script
  python3 main.py --query crash.sql --test ./check.sh

  # Quick reduction (statements and tables only)
  REDUCER_QUICK=1 python3 main.py --query crash.sql --test ./check.sh

  # Inspect how a script is parsed and folded
  python3 main.py --reduce crash.sql
        """
    )

    parser.add_argument('--query', help='SQL script to reduce')
    parser.add_argument('--test', help='Test script deciding whether a candidate is interesting')
    parser.add_argument('--reduce', metavar='PATH', help='Parse a script and print its folded statements, then exit')
    parser.add_argument('-c', '--config', help='Configuration file path')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')

    args = parser.parse_args()

    try:
        config = load_config(args.config) if args.config else default_config()
    except (OSError, ValueError) as e:
        print(f"Failed to load configuration: {e}", file=sys.stderr)
        return 1

    if args.debug:
        config['debug'] = True
    if args.test:
        config['oracle']['test_script'] = args.test

    logger = setup_logging(config)
    dialect = config['reduction'].get('sql_dialect')

    if args.reduce:
        try:
            return inspect_script(args.reduce, dialect)
        except OSError as e:
            logger.error(f"Cannot read {args.reduce}: {e}")
            return 1

    if not args.query or not args.test:
        parser.error("--query and --test are required unless --reduce is given")

    if not validate_config(config):
        return 1

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        with open(args.query, 'r', encoding='utf-8') as f:
            script_text = f.read()
    except OSError as e:
        logger.error(f"Cannot read {args.query}: {e}")
        return 1

    try:
        active_oracle = ScriptOracle.from_config(config['oracle'])
        pipeline = ReductionPipeline(active_oracle, config)
        result = pipeline.run(script_text)
        ResultReporter(config).report(result, source=args.query)
    except ReductionError as e:
        logger.error(f"Reduction failed during stage '{e.stage}': {e}")
        return 1
    except OracleError as e:
        logger.error(f"Oracle setup failed: {e}")
        return 1
    except OSError as e:
        logger.error(f"Failed to write results: {e}")
        logger.debug(traceback.format_exc())
        return 1

    logger.info("Final Statistics:")
    logger.info(f"   Statements: {result.original_statements} -> {result.reduced_statements}")
    logger.info(f"   Tokens: {result.original_tokens} -> {result.reduced_tokens}")
    logger.info(f"   Oracle checks: {result.oracle_checks}")
    logger.info(f"   Elapsed: {result.elapsed_ms} ms")
    return 0


if __name__ == "__main__":
    exit_code = main()
    sys.exit(exit_code)
