# ABOUTME: End-to-end tests for the `bookmeld enrich` CLI command.
# ABOUTME: Runs the command on real EPUB fixtures with fake providers and an isolated library.

from pathlib import Path

import pytest
from click.testing import CliRunner

from bookmeld.cli import cli
from bookmeld.metadata.coordinator import CoordinatorConfig, QueryCoordinator, RetryPolicy
from bookmeld.metadata.provider import MetadataProvider
from tests.fixtures.providers import FailingProvider, StaticProvider, make_record

NO_RETRY = CoordinatorConfig(retry=RetryPolicy(max_retries=0, base_delay=0.0))


def _use_providers(monkeypatch: pytest.MonkeyPatch, *providers: MetadataProvider) -> None:
    monkeypatch.setattr(
        "bookmeld.cli.options.create_coordinator",
        lambda timeout: QueryCoordinator(list(providers), NO_RETRY),
    )


def _described(source: str, confidence: float):
    return make_record(
        source,
        confidence=confidence,
        title="1984",
        authors=("George Orwell",),
        isbn=("9780451524935",),
        description="A dystopian novel.",
    )


class TestEnrichCommand:
    """E2E tests for bookmeld enrich."""

    def test_enrich_shows_fields(
        self, sample_epub: Path, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Missing fields found online are listed with provider counts."""
        _use_providers(
            monkeypatch,
            StaticProvider("alpha", [_described("alpha", 0.9)]),
            StaticProvider("beta", [_described("beta", 0.85)]),
        )
        result = CliRunner().invoke(
            cli, ["enrich", str(sample_epub), "--db", str(tmp_path / "test.db")]
        )
        assert result.exit_code == 0, result.output
        assert "by George Orwell" in result.output
        assert "Not in the library yet." in result.output
        assert "synopsis" in result.output
        assert "Providers: 2/2 succeeded" in result.output

    def test_nothing_enriched(
        self, sample_epub: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A failing provider leaves nothing to propose and is reported."""
        _use_providers(monkeypatch, FailingProvider("broken"))
        result = CliRunner().invoke(
            cli, ["enrich", str(sample_epub), "--no-check-library", "--no-fallbacks"]
        )
        assert result.exit_code == 0, result.output
        assert "No fields could be enriched." in result.output
        assert "Providers: 0/1 succeeded" in result.output
        assert "broken is down" in result.output

    def test_details_renders_preview(
        self, sample_epub: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """--details prints the reconciled preview and conflict summary."""
        _use_providers(monkeypatch, StaticProvider("alpha", [_described("alpha", 0.9)]))
        result = CliRunner().invoke(
            cli, ["enrich", str(sample_epub), "--no-check-library", "--details"]
        )
        assert result.exit_code == 0, result.output
        assert "Overall confidence" in result.output
        assert "No conflicts between sources." in result.output

    def test_unreadable_file(
        self, corrupt_epub: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """A corrupt EPUB exits with status 1."""
        _use_providers(monkeypatch, StaticProvider("alpha"))
        result = CliRunner().invoke(cli, ["enrich", str(corrupt_epub), "--no-check-library"])
        assert result.exit_code == 1
        assert "Error reading:" in result.output
