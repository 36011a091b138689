import json

import pytest

from tokenscope import cli
from tokenscope.service import TokenDataService

from conftest import BSC_ADDRESS, SOL_ADDRESS


def test_parser_defaults():
    args = cli.build_parser().parse_args(["bundle", BSC_ADDRESS])
    assert args.command == "bundle"
    assert args.chain is None
    assert args.analyze is False
    assert args.lang == "en"

    args = cli.build_parser().parse_args(["analytics", BSC_ADDRESS])
    assert args.chain == "bsc"


def test_parser_rejects_unknown_lang():
    with pytest.raises(SystemExit):
        cli.build_parser().parse_args(["bundle", BSC_ADDRESS, "--lang", "fr"])


@pytest.mark.parametrize(
    "argv, expected, code",
    [
        (["detect", BSC_ADDRESS], "bsc", 0),
        (["detect", SOL_ADDRESS], "solana", 0),
        (["detect", "???"], "solana", 0),
        (["detect", "???", "--strict"], "unknown", 1),
    ],
)
def test_detect_command(argv, expected, code, capsys):
    assert cli.main(argv) == code
    assert capsys.readouterr().out.strip() == expected


def test_analytics_command_prints_json(monkeypatch, tmp_path, capsys):
    async def fake_analytics(self, chain, address):
        return 200, {"success": True, "chain": chain, "data": {"address": address}}

    monkeypatch.setattr(TokenDataService, "token_analytics", fake_analytics)

    code = cli.main(["analytics", BSC_ADDRESS, "--env-file", str(tmp_path / "missing.env")])

    assert code == 0
    assert json.loads(capsys.readouterr().out) == {"success": True, "chain": "bsc", "data": {"address": BSC_ADDRESS}}


def test_bundle_command_exit_code_follows_status(monkeypatch, tmp_path, capsys):
    async def fake_handle(self, chain, address, analyze=False, lang="en"):
        return 404, {"success": False, "message": "Token base data not found or failed to fetch."}

    monkeypatch.setattr(TokenDataService, "handle", fake_handle)

    assert cli.main(["bundle", SOL_ADDRESS, "--env-file", str(tmp_path / "missing.env")]) == 1
    assert json.loads(capsys.readouterr().out)["success"] is False
