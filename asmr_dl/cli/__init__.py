"""
Command-line interface: Typer commands, console formatting and progress display.
"""
