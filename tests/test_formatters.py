from rich.console import Console

from asmr_dl.cli.formatters import format_error_with_suggestions
from asmr_dl.exceptions import ConfigurationError, LedgerIOError, NetworkError


def _render(panel) -> str:
    console = Console(record=True, width=120)
    console.print(panel)
    return console.export_text()


def test_ledger_errors_suggest_checking_the_ledger():
    text = _render(format_error_with_suggestions(LedgerIOError("disk full")))

    assert "LedgerIOError: disk full" in text
    assert "ledger and its directory are writable" in text


def test_configuration_errors_suggest_init():
    text = _render(format_error_with_suggestions(ConfigurationError("bad value")))

    assert "asmr-dl init --force" in text


def test_other_errors_fall_back_to_verbose_hint():
    text = _render(
        format_error_with_suggestions(NetworkError("boom"), {"type": "Unexpected"})
    )

    assert "-vv for detailed logs" in text
    assert "Context:" in text
