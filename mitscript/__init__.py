"""Lexer, parser, tree-walking interpreter and control-flow-graph front end for MITScript."""

__version__ = "0.1.0"

__all__ = [
    "ast",
    "cfg",
    "cfg_builder",
    "cfg_printer",
    "constprop",
    "interpreter",
    "lexer",
    "parser",
    "tokens",
    "values",
]