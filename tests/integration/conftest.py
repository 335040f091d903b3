"""Pytest configuration for integration tests."""

import json
import stat
from pathlib import Path
from typing import Union

import pytest

from edge_inputs.inputs import NginxPlusInput


@pytest.fixture
def load_fixture():
    """Load JSON fixture from tests/integration/fixtures/ directory.

    Usage:
        status = load_fixture("status_v8.json")
    """

    def _load_fixture(filename: str) -> dict:
        fixture_path = Path(__file__).parent / "fixtures" / filename

        if not fixture_path.exists():
            raise FileNotFoundError(f"Fixture file not found: {fixture_path}")

        with open(fixture_path, "r") as f:
            return json.load(f)

    return _load_fixture


@pytest.fixture
def nginx_plus_input():
    """Create a real NginxPlusInput (HTTP is mocked by @responses.activate)."""
    plugin = NginxPlusInput(urls=["http://demo.nginx.com/status"])
    yield plugin
    plugin.close()


@pytest.fixture
def fake_iptables(tmp_path, monkeypatch):
    """Install a fake ``iptables`` executable first on PATH.

    The script records its arguments in ``args.log`` and prints the listing
    stored in ``listing-<chain>.txt``, exiting 1 when no listing exists.

    Usage:
        bin_dir = fake_iptables({"INPUT": "Chain INPUT ..."})
    """

    def _fake_iptables(listings: dict[str, Union[str, bytes]]) -> Path:
        bin_dir = tmp_path / "bin"
        bin_dir.mkdir(exist_ok=True)

        for chain, listing in listings.items():
            path = bin_dir / f"listing-{chain}.txt"
            if isinstance(listing, bytes):
                path.write_bytes(listing)
            else:
                path.write_text(listing)

        script = bin_dir / "iptables"
        script.write_text(
            "#!/bin/sh\n"
            'dir=$(dirname "$0")\n'
            'echo "$@" >> "$dir/args.log"\n'
            'chain="$2"\n'
            'if [ "$1" = "-w" ]; then chain="$4"; fi\n'
            'if [ ! -f "$dir/listing-$chain.txt" ]; then\n'
            '  echo "iptables: No chain/target/match by that name." >&2\n'
            "  exit 1\n"
            "fi\n"
            'cat "$dir/listing-$chain.txt"\n'
        )
        script.chmod(script.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)

        monkeypatch.setenv("PATH", str(bin_dir), prepend=":")
        return bin_dir

    return _fake_iptables
