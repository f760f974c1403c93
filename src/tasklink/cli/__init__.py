"""Command-line interface for tasklink."""

from __future__ import annotations

import asyncio as asyncio
import logging as logging

from tasklink import TaskLink as TaskLink
from tasklink import load_config as load_config
from tasklink.cli.app import main as main
from tasklink.cli.commands import reconcile as reconcile_command
from tasklink.cli.commands import status as status_command
from tasklink.cli.commands import validate as validate_command
from tasklink.cli.parser import build_parser as build_parser

_format_reconcile_summary = reconcile_command.format_reconcile_summary
_format_status_summary = status_command.format_status_summary
_format_validation_summary = validate_command.format_validation_summary

_run_reconcile = reconcile_command.run_reconcile
_run_status = status_command.run_status
_run_validate = validate_command.run_validate
