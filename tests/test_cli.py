import asyncio

import pytest

from tokenvet.__main__ import _run_once, build_parser, main


def test_parser_defaults():
    args = build_parser().parse_args(["vet", "--address", "abc"])
    assert (args.command, args.address, args.chain) == ("vet", "abc", "solana")
    with pytest.raises(SystemExit):
        build_parser().parse_args(["launch"])


def test_invalid_address_is_rejected_before_any_fetch(settings):
    code = asyncio.run(_run_once(settings, "vet", "not-a-mint", "solana"))
    assert code == 2


def test_unsupported_chain_exits_nonzero(settings):
    assert main(["vet", "--address", "abc", "--chain", "moonchain"]) == 1
