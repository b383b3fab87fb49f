"""Namespace for command-line entry points; it holds no commands at present."""