"""
Reporting module for ActionPacks.

Output formats:
    - Console: Rich terminal output with status icons and detail tables
    - JSON: Structured output for hosts and scripts

Example:
    from actionpacks.report import generate_json_result, render_result

    render_result(result)
    print(generate_json_result(result))
"""

from actionpacks.report.console import render_result, render_rule, rule_table
from actionpacks.report.json import (
    build_result_dict,
    build_rule_dict,
    build_verdict_dict,
    generate_json_result,
)

__all__ = [
    "build_result_dict",
    "build_rule_dict",
    "build_verdict_dict",
    "generate_json_result",
    "render_result",
    "render_rule",
    "rule_table",
]
